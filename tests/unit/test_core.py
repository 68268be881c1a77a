from __future__ import annotations

import logging

import pytest

from cargo_billing.core.config import Config, DatabaseConfig
from cargo_billing.core.exceptions import InvalidConfigError, QuotaExceededError
from cargo_billing.core import logging as cargo_logging
from cargo_billing.core.logging import setup_logging, time_operation
from cargo_billing.core.types import IngestionBatch


@pytest.mark.unit
def test_memory_sqlite_uses_static_pool() -> None:
    options = DatabaseConfig.get_engine_options("sqlite+aiosqlite:///:memory:")

    assert options["poolclass"].__name__ == "StaticPool"
    assert "pool_size" not in options


@pytest.mark.unit
def test_server_databases_get_pool_options() -> None:
    options = DatabaseConfig.get_engine_options("postgresql+asyncpg://db/cargo")

    assert options["pool_pre_ping"] is True


@pytest.mark.unit
def test_invalid_settings_are_rejected(monkeypatch) -> None:
    monkeypatch.setattr(Config.app, "LOG_LEVEL", "LOUD")
    with pytest.raises(InvalidConfigError):
        Config.app.validate()

    monkeypatch.setattr(Config.ingestion, "CHUNK_SIZE", 0)
    with pytest.raises(InvalidConfigError) as exc_info:
        Config.ingestion.validate()
    assert exc_info.value.to_dict()["details"]["config_name"] == "INGEST_CHUNK_SIZE"


@pytest.mark.unit
def test_exception_serialization() -> None:
    error = QuotaExceededError("full", {"key": "cargo-a"})

    payload = error.to_dict()

    assert payload["message"] == "full"
    assert payload["details"] == {"key": "cargo-a"}


@pytest.mark.unit
def test_time_operation_logs_failures(caplog) -> None:
    logger = logging.getLogger("cargo_billing.tests")

    with caplog.at_level(logging.INFO, logger="cargo_billing.tests"):
        with pytest.raises(ValueError):
            with time_operation("Broken step", logger):
                raise ValueError("boom")

    assert "Starting: Broken step" in caplog.text
    assert "Failed: Broken step" in caplog.text


@pytest.mark.unit
def test_setup_logging_quiets_noisy_libraries(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(cargo_logging.logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    touched = [logging.getLogger(name) for name in ("cargo_billing", *cargo_logging.NOISY_LOGGERS)]
    levels = [logger.level for logger in touched]

    try:
        logger = setup_logging("DEBUG", technical=True)

        assert calls[0]["level"] == "DEBUG"
        assert calls[0]["format"] == cargo_logging.TECHNICAL_FORMAT
        assert logger.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        for logger, level in zip(touched, levels):
            logger.setLevel(level)


@pytest.mark.unit
def test_ingestion_batch_chunk_count() -> None:
    batch = IngestionBatch(records=[{}] * 120, chunk_size=50)

    assert batch.total_chunks == 3
    assert [len(c) for c in batch.chunks()] == [50, 50, 20]
    with pytest.raises(ValueError):
        IngestionBatch(records=[], chunk_size=0)


@pytest.mark.unit
def test_initialize_creates_cache_dir(monkeypatch, tmp_path) -> None:
    cache_dir = tmp_path / "nested" / "cache"
    monkeypatch.setattr(Config.paths, "CACHE_DIR", cache_dir)

    Config.initialize(configure_logging=False)

    assert cache_dir.is_dir()
    assert str(cache_dir) in Config.summary()
