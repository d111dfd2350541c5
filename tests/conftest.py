import pytest

_BOOKER_ENV = (
    "RESAMANIA_USERNAME",
    "RESAMANIA_PASSWORD",
    "MAX_ATTEMPTS",
    "MIN_HOURS_FROM_NOW",
    "MAX_DAYS_FROM_NOW",
    "HEADLESS",
    "CONFIG_FILE",
)


@pytest.fixture(autouse=True)
def _test_env(tmp_path, monkeypatch):
    # Keep a developer's shell or .env settings out of the tests
    for name in _BOOKER_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STATE_DIR", str(tmp_path / "state"))
    yield
