"""Nox sessions for the verification gateway."""

import nox

nox.options.sessions = ["tests", "lint"]
PYTHON = "3.11"


@nox.session(python=PYTHON)
def tests(session):
    """Run the test suite with branch coverage of the gatebot package."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=gatebot",
        "--cov-branch",
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON)
def lint(session):
    """Check style with ruff."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", "gatebot", "tests")
    session.run("ruff", "format", "--check", "gatebot", "tests")


@nox.session(python=PYTHON)
def format_code(session):
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", "gatebot", "tests")
    session.run("ruff", "check", "--fix", "gatebot", "tests")
