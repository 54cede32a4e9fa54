# -*- coding: utf-8 -*-
"""
Shared test fixtures for mail client tests.
"""

import sys
from pathlib import Path

# Ensure project root is importable without pip install
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from unittest.mock import Mock

from tests.helpers import make_config


@pytest.fixture
def test_config():
    return make_config()


@pytest.fixture
def mock_connection():
    """Factory fixture for creating mock IMAP connections."""

    def _make_mock_connection(search_data=b"", fetch_data=None):
        connection = Mock()
        connection.search.return_value = ("OK", [search_data])
        connection.fetch.return_value = ("OK", fetch_data or [])
        connection.noop.return_value = ("OK", [b"NOOP completed"])
        return connection

    return _make_mock_connection
