"""Tests for sinks, serialization and movement events."""

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cash_ledger.config import KafkaConfig
from cash_ledger.events import MOVEMENT_RECORDED, MovementPublisher
from cash_ledger.exceptions import SinkError
from cash_ledger.models import AccountRef, Currency, Movement, MovementType
from cash_ledger.sinks import ConsoleSink, JsonFileSink
from cash_ledger.sinks.serialization import serialize_value, to_dict


@pytest.fixture
def movement() -> Movement:
    return Movement(
        movement_id="m-1",
        movement_type=MovementType.TRANSFER,
        amount=Decimal("1500.50"),
        currency=Currency.ARS,
        source=AccountRef.master(),
        destination=AccountRef.project("p-1"),
        description="Transfer",
        created_at=datetime(2024, 1, 2, 3, 4, 5),
        related_payment_id="pay-1",
    )


class TestSerialization:
    """Tests for serialization helpers."""

    def test_movement_to_dict(self, movement: Movement) -> None:
        data = to_dict(movement)

        assert data["amount"] == "1500.50"
        assert data["movement_type"] == "TRANSFER"
        assert data["source"] == "master"
        assert data["destination"] == "project:p-1"
        assert data["created_at"] == "2024-01-02T03:04:05"
        assert data["metadata"] == {}

    def test_currency_keyed_dicts(self) -> None:
        assert serialize_value({Currency.USD: Decimal("1")}) == {"USD": "1"}

    def test_plain_values(self) -> None:
        assert serialize_value(date(2024, 1, 1)) == "2024-01-01"
        assert serialize_value((1, "a")) == [1, "a"]
        assert serialize_value(None) is None
        assert to_dict(5) == {"value": "5"}


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_write_batch(self, capsys: pytest.CaptureFixture, movement: Movement) -> None:
        sink = ConsoleSink(pretty=False)

        sink.write_batch("movements", [movement])
        captured = capsys.readouterr()

        assert "movements (1 records)" in captured.out
        assert "m-1" in captured.out
        assert sink._counts["movements"] == 1

    def test_max_records(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink(max_records=2)

        sink.write_batch("test", [{"id": i} for i in range(5)])

        assert "and 3 more records" in capsys.readouterr().out

    def test_close_prints_summary(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.write_batch("test", [{"id": 1}])

        sink.close()

        assert "test: 1 records" in capsys.readouterr().out


class TestJsonFileSink:
    """Tests for JsonFileSink."""

    def test_snapshot_mode_overwrites(self, tmp_path: Path, movement: Movement) -> None:
        sink = JsonFileSink(tmp_path)

        sink.write_batch("movements", [movement, movement])
        sink.write_batch("movements", [movement])

        data = json.loads((tmp_path / "movements.json").read_text(encoding="utf-8"))
        assert len(data) == 1
        assert data[0]["movement_id"] == "m-1"

    def test_append_mode_writes_jsonl(self, tmp_path: Path, movement: Movement) -> None:
        sink = JsonFileSink(tmp_path, append=True)

        sink.write_batch("ledger.movements", [movement])
        sink.write_batch("ledger.movements", [movement])

        lines = (tmp_path / "ledger_movements.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert sink._counts["ledger.movements"] == 2

    def test_creates_directory(self, tmp_path: Path) -> None:
        JsonFileSink(tmp_path / "nested" / "out")

        assert (tmp_path / "nested" / "out").is_dir()

    def test_write_failure_raises_sink_error(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)
        (tmp_path / "blocked.json").mkdir()

        with pytest.raises(SinkError):
            sink.write_batch("blocked", [{"id": 1}])


class TestKafkaSinkMocked:
    """Tests for KafkaSink using mocks (no actual Kafka connection)."""

    def test_producer_stats_success_rate(self) -> None:
        from cash_ledger.sinks.kafka import ProducerStats

        assert ProducerStats(sent=10, delivered=9, failed=1).success_rate == 0.9
        assert ProducerStats().success_rate == 0.0

    @patch("cash_ledger.sinks.kafka.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        from cash_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("kafka:9092")

        assert sink.config.bootstrap_servers == "kafka:9092"
        mock_producer_class.assert_called_once_with(KafkaConfig(bootstrap_servers="kafka:9092").to_dict())

    @patch("cash_ledger.sinks.kafka.Producer")
    def test_events_keyed_by_subject(self, mock_producer_class: MagicMock, movement: Movement) -> None:
        from cash_ledger.sinks.kafka import KafkaSink

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer
        sink = KafkaSink(KafkaConfig())
        publisher = MovementPublisher(sinks=[sink])

        publisher.publish([movement])

        kwargs = mock_producer.produce.call_args.kwargs
        assert kwargs["topic"] == "ledger.movements"
        assert kwargs["key"] == b"project:p-1"
        payload = json.loads(kwargs["value"])
        assert payload["event_type"] == MOVEMENT_RECORDED
        assert payload["data"]["amount"] == "1500.50"
        mock_producer.flush.assert_called_once()
        assert sink.stats.sent == 1

    @patch("cash_ledger.sinks.kafka.Producer")
    def test_custom_topic_is_keyed(self, mock_producer_class: MagicMock, movement: Movement) -> None:
        from cash_ledger.sinks.kafka import KafkaSink

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer
        sink = KafkaSink(KafkaConfig(), movements_topic="acme.cash.movements")
        publisher = MovementPublisher(topic="acme.cash.movements", sinks=[sink])

        publisher.publish([movement])

        kwargs = mock_producer.produce.call_args.kwargs
        assert kwargs["topic"] == "acme.cash.movements"
        assert kwargs["key"] == b"project:p-1"

    @patch("cash_ledger.sinks.kafka.Producer")
    def test_buffer_error_raises_sink_error(self, mock_producer_class: MagicMock) -> None:
        from cash_ledger.sinks.kafka import KafkaSink

        mock_producer = MagicMock()
        mock_producer.produce.side_effect = BufferError("queue full")
        mock_producer_class.return_value = mock_producer
        sink = KafkaSink("localhost:9092")

        with pytest.raises(SinkError):
            sink.send("ledger.movements", {"subject": "master"})

        assert sink.stats.sent == 0

    @patch("cash_ledger.sinks.kafka.Producer")
    def test_delivery_callback(self, mock_producer_class: MagicMock) -> None:
        from cash_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")
        msg = MagicMock()
        msg.topic.return_value = "ledger.movements"
        msg.partition.return_value = 0
        msg.offset.return_value = 12

        sink._delivery_callback(None, msg)
        sink._delivery_callback("timeout", msg)

        assert sink.stats.delivered == 1
        assert sink.stats.failed == 1


class TestMovementPublisher:
    """Tests for MovementPublisher."""

    def test_event_envelope(self, movement: Movement) -> None:
        events = MovementPublisher(source="tests").publish([movement])

        event = events[0]
        assert event.event_type == "movement.recorded"
        assert event.source == "tests"
        assert event.subject == "project:p-1"
        assert event.metadata == {"accounts": ["master", "project:p-1"], "currency": "ARS"}

    def test_empty_publish(self) -> None:
        assert MovementPublisher().publish([]) == []

    def test_listeners_then_sinks(self, movement: Movement) -> None:
        calls = []
        sink = MagicMock()
        sink.write_batch.side_effect = lambda topic, records: calls.append("sink")
        publisher = MovementPublisher(topic="custom")
        publisher.subscribe(lambda event: calls.append("listener"))
        publisher.add_sink(sink)

        publisher.publish([movement])

        assert calls == ["listener", "sink"]
        assert sink.write_batch.call_args.args[0] == "custom"
