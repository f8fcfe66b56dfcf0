"""Module to setup Factories and other required artifacts for tests

    isort:skip_file
"""

import logging

import pytest


def pytest_addoption(parser):
    """Additional options for running tests with pytest"""
    parser.addoption(
        "--slow", action="store_true", default=False, help="Run slow tests"
    )
    parser.addoption(
        "--sqlite", action="store_true", default=False, help="Run Sqlite tests"
    )


def pytest_collection_modifyitems(config, items):
    """Configure special markers on tests, so as to control execution"""
    run_slow = run_sqlite = False

    if config.getoption("--slow"):
        # --slow given in cli: do not skip slow tests
        run_slow = True

    if config.getoption("--sqlite"):
        run_sqlite = True

    skip_slow = pytest.mark.skip(reason="need --slow option to run")
    skip_sqlite = pytest.mark.skip(reason="need --sqlite option to run")

    for item in items:
        if "slow" in item.keywords and run_slow is False:
            item.add_marker(skip_slow)
        if "sqlite" in item.keywords and run_sqlite is False:
            item.add_marker(skip_sqlite)


@pytest.fixture
def provider():
    from multiform.adapters import MemoryProvider

    provider = MemoryProvider()
    yield provider
    provider._data_reset()


@pytest.fixture
def sqlite_provider():
    from multiform.adapters.repository.sqlalchemy import SqliteProvider

    provider = SqliteProvider(
        "default", {"provider": "sqlite", "database_uri": "sqlite://"}
    )
    yield provider
    provider._drop_database_artifacts()
    provider.close()


@pytest.fixture(autouse=True)
def clear_uow_stack():
    """Make sure no Unit of Work leaks from one test into another"""
    from multiform.utils.globals import _uow_context_stack

    yield

    while _uow_context_stack.top is not None:
        _uow_context_stack.pop()


@pytest.fixture
def restore_logging():
    """Undo changes `configure_logging` makes to the global logging setup"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    named = {
        name: logging.getLogger(name).level
        for name in ("multiform", "multiform.coordinator", "multiform.adapters")
    }

    yield

    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    for name, named_level in named.items():
        logging.getLogger(name).setLevel(named_level)
