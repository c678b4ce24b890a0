"""
Shared fixtures.

The app is started with the psycopg2 pool stubbed out, so nothing here needs
a database, OAG or ACS. Individual tests patch the repository functions or
override the client dependencies they care about.
"""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    with patch("flights_api.main.init_pool"), patch("flights_api.main.close_pool"):
        from flights_api.main import app
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.clear()
