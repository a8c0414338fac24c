"""Output sinks for ledger notifications and snapshots."""

from cash_ledger.sinks.console import ConsoleSink
from cash_ledger.sinks.json_file import JsonFileSink
from cash_ledger.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink"]
