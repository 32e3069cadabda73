"""
tests/test_config.py -- Signing key policy enforced by core/config.py.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

ACCESS = "a" * 32
REFRESH = "r" * 32


def test_debug_generates_distinct_keys(monkeypatch):
    monkeypatch.delenv("ACCESS_SECRET_KEY", raising=False)
    monkeypatch.delenv("REFRESH_SECRET_KEY", raising=False)
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.access_secret_key) >= 32
    assert settings.access_secret_key != settings.refresh_secret_key


def test_production_requires_keys(monkeypatch):
    monkeypatch.delenv("ACCESS_SECRET_KEY", raising=False)
    monkeypatch.delenv("REFRESH_SECRET_KEY", raising=False)
    with pytest.raises(ValidationError, match="ACCESS_SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)
    with pytest.raises(ValidationError, match="REFRESH_SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, access_secret_key=ACCESS)


def test_production_with_keys():
    settings = Settings(_env_file=None, debug=False, access_secret_key=ACCESS, refresh_secret_key=REFRESH)
    assert settings.access_token_expire_seconds == 7 * 24 * 3600
    assert settings.refresh_token_expire_seconds == 30 * 24 * 3600


def test_short_key_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, access_secret_key="short", refresh_secret_key=REFRESH)


def test_identical_keys_rejected():
    with pytest.raises(ValidationError, match="must differ"):
        Settings(_env_file=None, access_secret_key=ACCESS, refresh_secret_key=ACCESS)


def test_non_positive_lifetime_rejected():
    with pytest.raises(ValidationError, match="positive"):
        Settings(
            _env_file=None,
            access_secret_key=ACCESS,
            refresh_secret_key=REFRESH,
            access_token_expire_seconds=0,
        )
