"""
Integration test fixtures.

Integration tests:
- Exercise real boundaries (files, Flask, YAML, environment)
- Write only to temp locations
- Never reach a model endpoint
"""

import shutil
import tempfile
from pathlib import Path

import pytest

import config
import repositories


@pytest.fixture
def temp_dir():
    """Temporary directory for test data."""
    d = tempfile.mkdtemp(prefix="auditor-")
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def data_dir(temp_dir):
    """Analyses directory; the JSON backend creates it on first write."""
    return temp_dir / "analyses"


@pytest.fixture(autouse=True)
def isolated_backend(data_dir):
    """Default repository and key pool never touch the real data dir or keys."""
    repositories.configure_backend("json", base_path=data_dir)
    config.reset_key_pool()
    yield
    repositories.configure_backend("json")
    config.reset_key_pool()
