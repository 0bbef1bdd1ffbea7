"""
Tests for configuration loading and structured logging
"""

import json
import logging

import pytest

from bank_ledger import config as config_module
from bank_ledger.config import LedgerConfig, get_config, reload_config
from bank_ledger.engine import TransactionEngine
from bank_ledger.exceptions import InsufficientFunds
from bank_ledger.logging_config import JSONFormatter, get_logger, log_action, setup_logging
from bank_ledger.seed import seed_sample_accounts
from bank_ledger.storage import InMemoryLedgerStore


class TestLedgerConfig:
    """Test environment driven configuration"""

    def test_defaults(self, monkeypatch):
        for name in ("BANK_LEDGER_MAX_PAGE_SIZE", "BANK_LEDGER_STORAGE_BACKEND"):
            monkeypatch.delenv(name, raising=False)
        cfg = LedgerConfig(_env_file=None)
        assert cfg.api_port == 8090
        assert cfg.storage_backend == "memory"
        assert cfg.database_path == ":memory:"
        assert cfg.lock_timeout_seconds is None
        assert (cfg.default_page_size, cfg.max_page_size) == (10, 100)
        assert (cfg.description_min_length, cfg.description_max_length) == (3, 100)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BANK_LEDGER_MAX_PAGE_SIZE", "25")
        monkeypatch.setenv("bank_ledger_storage_backend", "sqlite")
        monkeypatch.setenv("BANK_LEDGER_LOCK_TIMEOUT_SECONDS", "2.5")
        cfg = LedgerConfig(_env_file=None)
        assert cfg.max_page_size == 25
        assert cfg.storage_backend == "sqlite"
        assert cfg.lock_timeout_seconds == 2.5

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("BANK_LEDGER_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            LedgerConfig(_env_file=None)

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("BANK_LEDGER_API_PORT", "9999")
        try:
            assert reload_config().api_port == 9999
            assert get_config().api_port == 9999
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON log output"""

    def test_json_formatter_fields(self):
        logger = logging.getLogger("bank_ledger.test_formatter")
        record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.action = "create_transaction"
        record.extra = {"amount": "1.00"}

        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["action"] == "create_transaction"
        assert entry["extra"] == {"amount": "1.00"}
        assert "resource" not in entry

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="bank_ledger.test_setup")
        setup_logging("WARNING", logger_name="bank_ledger.test_setup", log_format="text")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_action_attaches_fields(self, caplog):
        logger = get_logger("bank_ledger.test_action")
        with caplog.at_level(logging.INFO, logger="bank_ledger.test_action"):
            log_action(logger, "info", "Did a thing", action="thing", resource="account:1",
                       extra={"k": "v"})

        record = caplog.records[-1]
        assert record.action == "thing"
        assert record.resource == "account:1"
        assert record.extra == {"k": "v"}

    @pytest.mark.asyncio
    async def test_engine_logs_commits_and_rejections(self, caplog):
        store = InMemoryLedgerStore()
        await seed_sample_accounts(store)
        engine = TransactionEngine(store, LedgerConfig(_env_file=None))

        with caplog.at_level(logging.INFO, logger="bank_ledger.engine"):
            await engine.create_transaction("1", "DEPOSIT", "100.00", "Paycheck")
            with pytest.raises(InsufficientFunds):
                await engine.create_transaction("1", "WITHDRAWAL", "6000.00", "Rent")

        engine_records = [r for r in caplog.records if r.name == "bank_ledger.engine"]
        assert [r.levelname for r in engine_records] == ["INFO", "WARNING"]
        assert engine_records[0].extra["amount"] == "100.00"
        assert engine_records[1].extra["error"] == "InsufficientFunds"
