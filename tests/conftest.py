"""Shared test fixtures for strata."""

import pytest

from _memfs import MemoryDirectory, MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def empty_root():
    return MemoryDirectory()


@pytest.fixture
def pictures_root(empty_root):
    """/pictures/cats"""
    return empty_root.mkdir(["pictures", "cats"])


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch):
    monkeypatch.delenv("STRATA_CONFIG", raising=False)
