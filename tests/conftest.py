"""Shared fixtures for trove tests."""

import pytest

from trove import connect


@pytest.fixture(params=["memory://", "sqlite:///:memory:"])
def db(request):
    """A fresh collection on each backend."""
    collection = connect(request.param, name="testing")
    yield collection
    if not collection.closed:
        collection.close()
