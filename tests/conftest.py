from __future__ import annotations

import os

import pytest
from prometheus_client import REGISTRY

from s3upload.common.config import get_settings

_ENV_PREFIXES = ("S3_", "STORAGE_", "LOG_")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test without ambient S3_/STORAGE_/LOG_ variables or a .env file."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def metric_value():
    """Read a sample from the default registry, treating absent samples as 0."""

    def read(name: str, **labels: str) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    return read
