"""Pytest configuration shared across the suite."""

from pathlib import Path

import pytest

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from ltiadvantage.core import config
from ltiadvantage.dependencies import clients as factories

_CACHED_FACTORIES = (
    config.get_settings,
    factories._settings,
    factories.get_transport,
    factories.get_user_result_store,
    factories.get_token_manager,
    factories.get_platform_connection,
)


@pytest.fixture
def fresh_factories(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Rebuild cached settings and clients from the current environment."""
    monkeypatch.setenv("LTI_STORE_PATH", str(tmp_path / "users.sqlite3"))
    for factory in _CACHED_FACTORIES:
        factory.cache_clear()
    yield
    for factory in _CACHED_FACTORIES:
        factory.cache_clear()
