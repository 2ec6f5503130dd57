import pytest

from helpers import PROVIDER_ENV


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host credentials and overrides out of every test."""
    for name in PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
