import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13", "3.14"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run core tests across Python versions."""
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def full(session: nox.Session) -> None:
    """Run all tests, including the slow and sqlite ones, across Python versions."""
    session.install("-e", ".[all,test]")
    session.run("pytest", "--slow", "--sqlite", "--cov=multiform", *session.posargs)
