"""Shared fixtures for the optimize events test suite."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from optimize_events.paginator import Paginator


@pytest.fixture
def client():
    """UQL client double with async execute/continue methods."""
    mock = MagicMock()
    mock.execute_query = AsyncMock()
    mock.continue_query = AsyncMock()
    return mock


@pytest.fixture
def paginator(client):
    return Paginator(client)
