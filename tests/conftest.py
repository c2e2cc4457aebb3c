"""
pytest configuration for the cspark test suite.

Adds the src directory to the Python path and provides aiohttp session
doubles plus a ready-made Config.
"""

import json
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from cspark.config.config import Config  # noqa: E402

BASE_URL = "https://excel.test.us.coherent.global/my-tenant"
API_KEY = "test-api-key-abcd"


def build_response(status=200, json_body=None, body=b"", headers=None):
    """Create an aiohttp response double usable with ``async with``."""
    response = AsyncMock()
    response.status = status
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        headers = {"Content-Type": "application/json", **(headers or {})}
    response.headers = headers or {}
    response.read = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def build_session(*outcomes):
    """
    Create a session double whose ``request`` yields ``outcomes`` in order.

    An exception instance in ``outcomes`` is raised by that call.
    """
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.request = MagicMock(side_effect=list(outcomes))
    return session


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_session():
    return build_session


@pytest.fixture
def config():
    """API-key Config with zero retry delay, isolated from CSPARK_* variables."""
    return Config.create(
        base_url=BASE_URL,
        api_key=API_KEY,
        retry_interval_seconds=0,
        read_env=False,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CSPARK_* variable for the duration of a test."""
    for name in list(os.environ):
        if name.startswith("CSPARK_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
