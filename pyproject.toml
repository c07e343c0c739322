[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "benchreport"
version = "0.0.1"
description = "Benchmark summaries, regression checks, trend history and backend capability reports"
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "criterion", "regression", "report", "history"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
benchmark-report = "benchreport.report:main"
benchmark-history = "benchreport.history:main"
backend-capability-report = "benchreport.capabilities:main"

[tool.hatch.build.targets.wheel]
packages = ["benchreport"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
