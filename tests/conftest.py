"""Shared fixtures: a mocked AsyncSession and query-result builder."""

from unittest.mock import AsyncMock, MagicMock

import pytest


def _make_result(scalar=None, scalars=None, rows=None):
    """Mock of a SQLAlchemy ``Result`` covering the accessors the services use."""
    items = list(scalars or [])
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = items
    result.scalars.return_value.first.return_value = items[0] if items else None
    result.all.return_value = list(rows or [])
    return result


@pytest.fixture
def make_result():
    return _make_result


@pytest.fixture
def db():
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.return_value = _make_result()

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=None)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session
