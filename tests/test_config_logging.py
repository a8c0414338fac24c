"""Tests for config and logging."""

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

import cash_ledger
from cash_ledger.config import CashLedgerConfig, KafkaConfig, LedgerConfig, OutputConfig
from cash_ledger.exceptions import ConfigurationError
from cash_ledger.logging import JsonFormatter, get_logger, setup_logging


class TestKafkaConfig:
    """Tests for KafkaConfig."""

    def test_default_values(self) -> None:
        config = KafkaConfig()

        assert config.bootstrap_servers == "localhost:9092"
        assert config.acks == "all"
        assert config.retries == 3

    def test_to_dict(self) -> None:
        config = KafkaConfig(bootstrap_servers="kafka:9092", acks="1")

        result = config.to_dict()

        assert result["bootstrap.servers"] == "kafka:9092"
        assert result["acks"] == "1"
        assert result["compression.type"] == "snappy"


class TestLedgerConfig:
    """Tests for LedgerConfig."""

    def test_default_values(self) -> None:
        config = LedgerConfig()

        assert config.epsilon == Decimal("0.01")
        assert config.default_admin_fee_percentage == Decimal("15")
        assert config.enforce_sufficient_funds is True
        assert config.movements_topic == "ledger.movements"

    def test_negative_epsilon(self) -> None:
        with pytest.raises(ConfigurationError):
            LedgerConfig(epsilon=Decimal("-0.01"))

    def test_fee_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError):
            LedgerConfig(default_admin_fee_percentage=Decimal("101"))


class TestCashLedgerConfig:
    """Tests for CashLedgerConfig."""

    def test_default_values(self) -> None:
        config = CashLedgerConfig()

        assert isinstance(config.ledger, LedgerConfig)
        assert isinstance(config.output, OutputConfig)
        assert config.output.json_output_dir == Path("output")
        assert config.seed is None
        assert config.log_level == "INFO"

    def test_from_env_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = CashLedgerConfig.from_env()

        assert config.ledger.epsilon == Decimal("0.01")
        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.seed is None
        assert config.log_format == "standard"

    def test_from_env_custom(self) -> None:
        env = {
            "LEDGER_EPSILON": "0.05",
            "LEDGER_ADMIN_FEE_PERCENTAGE": "10",
            "LEDGER_ENFORCE_FUNDS": "false",
            "LEDGER_MOVEMENTS_TOPIC": "cash.movements",
            "KAFKA_BOOTSTRAP_SERVERS": "kafka:29092",
            "OUTPUT_DIR": "/tmp/ledger",
            "PRETTY_JSON": "true",
            "SEED": "7",
            "LOG_LEVEL": "DEBUG",
            "LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env, clear=True):
            config = CashLedgerConfig.from_env()

        assert config.ledger.epsilon == Decimal("0.05")
        assert config.ledger.default_admin_fee_percentage == Decimal("10")
        assert config.ledger.enforce_sufficient_funds is False
        assert config.ledger.movements_topic == "cash.movements"
        assert config.kafka.bootstrap_servers == "kafka:29092"
        assert config.output.json_output_dir == Path("/tmp/ledger")
        assert config.output.pretty_json is True
        assert config.seed == 7
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "env",
        [{"SEED": "abc"}, {"LEDGER_EPSILON": "tiny"}, {"LEDGER_ADMIN_FEE_PERCENTAGE": "150"}],
    )
    def test_from_env_invalid(self, env: dict) -> None:
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError):
                CashLedgerConfig.from_env()


class TestLogging:
    """Tests for logging setup."""

    def test_setup_standard(self) -> None:
        setup_logging("DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("cash_ledger").level == logging.DEBUG
        assert logging.getLogger("confluent_kafka").level == logging.WARNING

    def test_setup_json(self) -> None:
        setup_logging("INFO", "json")

        assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)

    def test_invalid_level_falls_back_to_info(self) -> None:
        setup_logging("LOUD")

        assert logging.getLogger().level == logging.INFO

    def test_json_formatter(self) -> None:
        record = logging.LogRecord("cash_ledger.test", logging.WARNING, __file__, 1, "drift %s", ("master",), None)
        record.extra = {"account": "master", "delta": Decimal("1.50")}

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "drift master"
        assert data["account"] == "master"
        assert data["delta"] == "1.50"

    def test_json_formatter_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            import sys

            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in data["exception"]

    def test_get_logger(self) -> None:
        assert get_logger("cash_ledger.test").name == "cash_ledger.test"


class TestPackage:
    """Tests for package metadata."""

    def test_version(self) -> None:
        assert cash_ledger.__version__ == "0.1.0"

    def test_exports_facade(self) -> None:
        assert "CashLedger" in cash_ledger.__all__
