"""
Pytest configuration og shared fixtures.
"""

import os
import shutil
import tempfile

import pytest

from plugin_guard.dependencies import reset_singletons


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture
def temp_dir():
    """Temporary directory removed after the test."""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def make_file():
    """Helper til at oprette test filer (parent directories included)."""

    def _make(path: str, content: bytes = b"test content") -> str:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        return path

    return _make
