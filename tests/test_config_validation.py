from app.scraper import config
from app.scraper.config_validation import validate_runtime_config
import pytest


def test_unknown_run_mode_rejected() -> None:
    with pytest.raises(ValueError):
        validate_runtime_config("cli", mode="new")


@pytest.mark.parametrize("mode", ["discover", "resume", "RESUME"])
def test_known_run_modes_accepted(mode: str) -> None:
    validate_runtime_config("cli", mode=mode)


def test_unknown_driver_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "DRIVER_BACKEND", "phantomjs")
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_unknown_extract_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "EXTRACT_MODE_DEFAULT", "popup")
    with pytest.raises(ValueError):
        validate_runtime_config("ui")


def test_max_attempts_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_ATTEMPTS", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_min_free_mb_negative(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", -5)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "NAV_TIMEOUT_SECONDS", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_concurrency_knobs_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_PARALLEL_PARTITIONS", 0)
    monkeypatch.setattr(config, "MAX_EXTRACT_WORKERS", -2)
    monkeypatch.setattr(config, "MAX_DRIVER_SESSIONS", 0)

    validate_runtime_config("tests")

    assert config.MAX_PARALLEL_PARTITIONS == 1
    assert config.MAX_EXTRACT_WORKERS == 1
    assert config.MAX_DRIVER_SESSIONS == 1
