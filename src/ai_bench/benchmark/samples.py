"""Built-in sample benchmarks."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .base import BenchmarkTest, StructuredOutputTest, TextTest


def sample_text_tests() -> list[BenchmarkTest]:
    """Judged free-text questions."""
    return [
        TextTest(
            name="basic-qa-literature",
            prompt="Who wrote the novel 'Crime and Punishment'?",
            description="Tests basic factual knowledge about classic literature",
            expected_answer="Fyodor Dostoevsky",
        ),
        TextTest(
            name="basic-qa-science",
            prompt="What is the chemical symbol for gold?",
            description="Tests basic chemistry knowledge",
            expected_answer="Au",
        ),
        TextTest(
            name="basic-qa-geography",
            prompt="What is the capital city of Japan?",
            description="Tests basic geography knowledge",
            expected_answer="Tokyo",
        ),
        TextTest(
            name="reasoning-math",
            prompt=(
                "If a train travels at 60 miles per hour for 2.5 hours, "
                "how far does it travel? Show your work."
            ),
            description="Tests basic mathematical reasoning",
            expected_answer="150 miles",
        ),
        TextTest(
            name="instruction-following",
            prompt=(
                "List exactly 3 primary colors. Respond with only the colors, "
                "separated by commas."
            ),
            description="Tests ability to follow specific instructions",
            expected_answer="Red, Blue, Yellow",
        ),
    ]


# --- sample-json-benchmark schemas -----------------------------------------

Language = Literal["TypeScript", "Python", "Go", "Rust"]


class TechStack(BaseModel):
    backendFramework: Literal["nextjs", "express", "fastapi", "flask", "hono"]
    frontendFramework: Literal["nextjs", "react", "vue", "svelte", "angular"]
    database: Literal["neon", "supabase", "planetscale", "vercel postgres", "mongodb"]
    hostingProvider: Literal["vercel", "railway", "flyio"]
    stylingFramework: Literal["tailwind", "chakra", "mui", "styled-components"]


class MonolithArchitecture(BaseModel):
    projectType: Literal["Monolith"]
    framework: Literal["Next.js", "Ruby on Rails", "Django", "Laravel"]


class Service(BaseModel):
    serviceName: str
    language: Language


class MicroservicesArchitecture(BaseModel):
    projectType: Literal["Microservices"]
    services: list[Service] = Field(min_length=2)


class ServerlessArchitecture(BaseModel):
    projectType: Literal["Serverless"]
    provider: Literal["AWS Lambda", "Vercel Functions", "Google Cloud Functions"]
    runtime: Literal["Node.js", "Python", "Deno"]


class SQLDatabase(BaseModel):
    dbType: Literal["SQL"]
    engine: Literal["PostgreSQL", "MySQL", "SQLite"]
    orm: Literal["Prisma", "Drizzle", "SQLAlchemy", "Active Record"]


class NoSQLDatabase(BaseModel):
    dbType: Literal["NoSQL"]
    engine: Literal["MongoDB", "Firestore", "DynamoDB"]


class ExampleProject(BaseModel):
    complexity: Literal["Low", "Medium", "High", "Enterprise"]
    role: Literal[
        "Frontend Lead",
        "Backend Developer",
        "Full-Stack Engineer",
        "DevOps Specialist",
        "UI/UX Designer",
    ]
    seniority: Literal["Junior", "Mid-level", "Senior", "Principal"]
    projectName: str
    projectDescription: str
    architecture: Annotated[
        Union[MonolithArchitecture, MicroservicesArchitecture, ServerlessArchitecture],
        Field(discriminator="projectType"),
    ]
    language: Language
    database: Annotated[
        Union[SQLDatabase, NoSQLDatabase],
        Field(discriminator="dbType"),
    ]


ExampleProjects = TypeAdapter(Annotated[list[ExampleProject], Field(min_length=1)])


def sample_json_tests() -> list[BenchmarkTest]:
    """Structured-output tests validated against pydantic schemas."""
    return [
        StructuredOutputTest(
            name="json-generation",
            prompt=(
                "Return the most popular services/technologies for the following "
                "categories: backend, frontend, database, hosting, styling."
            ),
            description=(
                "Simple enum test using common web technologies. Coding architecture "
                "is widely available and easy to pull off."
            ),
            schema=TechStack,
        ),
        StructuredOutputTest(
            name="json-generation-high",
            prompt=(
                "Generate a couple of example projects focusing on specific roles "
                "and seniority levels."
            ),
            description=(
                "Introduces discriminated unions and literals. This is fairly "
                "high-level and is meant to test schema support within models."
            ),
            schema=ExampleProjects,
        ),
    ]
