# tests/conftest.py

"""Shared pytest fixtures for all engine tests."""

import logging
from collections.abc import Generator

import pytest


@pytest.fixture(autouse=True)
def reset_project_logger() -> Generator[None, None, None]:
    """Detach handlers added by setup_logging so tests stay isolated."""
    yield
    root_logger = logging.getLogger("price_tracker")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
