"""Configuration management for cash-ledger."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from cash_ledger.exceptions import ConfigurationError


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class OutputConfig:
    """Snapshot output configuration."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class LedgerConfig:
    """Accounting rules for the ledger core."""

    # Tolerance used when comparing stored aggregates with the ledger
    epsilon: Decimal = Decimal("0.01")
    # Fallback fee when a project does not define its own percentage
    default_admin_fee_percentage: Decimal = Decimal("15")
    enforce_sufficient_funds: bool = True
    movements_topic: str = "ledger.movements"

    def __post_init__(self) -> None:
        if self.epsilon < 0:
            raise ConfigurationError(f"epsilon must be >= 0, got {self.epsilon}")
        if not Decimal("0") <= self.default_admin_fee_percentage <= Decimal("100"):
            raise ConfigurationError(
                f"default_admin_fee_percentage must be within 0..100, "
                f"got {self.default_admin_fee_percentage}"
            )


@dataclass
class CashLedgerConfig:
    """Main configuration for cash-ledger."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "CashLedgerConfig":
        """Create config from environment variables."""
        import os

        ledger = LedgerConfig(
            epsilon=_env_decimal("LEDGER_EPSILON", "0.01"),
            default_admin_fee_percentage=_env_decimal("LEDGER_ADMIN_FEE_PERCENTAGE", "15"),
            enforce_sufficient_funds=os.getenv("LEDGER_ENFORCE_FUNDS", "true").lower() == "true",
            movements_topic=os.getenv("LEDGER_MOVEMENTS_TOPIC", "ledger.movements"),
        )

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        output = OutputConfig(
            json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        seed_str = os.getenv("SEED")
        try:
            seed = int(seed_str) if seed_str else None
        except ValueError as exc:
            raise ConfigurationError(f"SEED must be an integer, got {seed_str!r}") from exc

        return cls(
            ledger=ledger,
            kafka=kafka,
            output=output,
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


def _env_decimal(name: str, default: str) -> Decimal:
    import os

    raw = os.getenv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a decimal number, got {raw!r}") from exc
