"""Tests for work matrix construction."""

import pytest

from ai_bench.benchmark.base import TextTest
from ai_bench.errors import ConfigurationError
from ai_bench.matrix import build_work_matrix


def _make_tests(*names: str) -> list[TextTest]:
    return [TextTest(name=n, prompt=f"prompt for {n}") for n in names]


def test_matrix_size_and_unique_keys(make_model):
    models = [make_model("m1"), make_model("m2")]
    items = build_work_matrix(models, _make_tests("t1", "t2", "t3"), runs_per_test=2)
    assert len(items) == 12
    assert len({item.key for item in items}) == 12


def test_matrix_is_model_major(make_model):
    models = [make_model("m1"), make_model("m2")]
    items = build_work_matrix(models, _make_tests("t1", "t2"), runs_per_test=2)
    assert [item.key for item in items[:4]] == [
        ("t1", "m1", 0), ("t1", "m1", 1), ("t2", "m1", 0), ("t2", "m1", 1),
    ]
    assert all(item.model.name == "m2" for item in items[4:])


def test_item_label(make_model):
    item = build_work_matrix([make_model("gpt")], _make_tests("math"), runs_per_test=1)[0]
    assert item.label == "math (gpt) [Run 1]"


def test_empty_inputs_give_empty_matrix(make_model):
    assert build_work_matrix([], _make_tests("t1"), runs_per_test=3) == []
    assert build_work_matrix([make_model()], [], runs_per_test=3) == []


def test_duplicate_names_rejected(make_model):
    with pytest.raises(ConfigurationError, match="Duplicate model"):
        build_work_matrix([make_model("m"), make_model("m")], _make_tests("t"), 1)
    with pytest.raises(ConfigurationError, match="Duplicate test"):
        build_work_matrix([make_model("m")], _make_tests("t", "t"), 1)


def test_runs_per_test_must_be_positive(make_model):
    with pytest.raises(ConfigurationError):
        build_work_matrix([make_model()], _make_tests("t"), runs_per_test=0)
