[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "prisma-runtime"
version = "0.1.0"
description = "Runtime for Prisma clients: engine binary management, query engine process control and data proxy access."
requires-python = ">=3.10"
dependencies = [
    "python-dotenv",
]
keywords = ["prisma", "orm", "database", "query-engine", "graphql", "data-proxy"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
prisma-runtime = "prisma_runtime.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["prisma_runtime"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
