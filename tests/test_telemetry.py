import json
import unittest
from queue import Queue

from kalaha_telemetry import (
    CallbackTelemetrySink,
    MoveAppliedEvent,
    NullTelemetrySink,
    QueueTelemetrySink,
    TelemetryEnvelope,
    emit_dataclass_event,
    emit_event,
    encode_envelope,
    parse_host_port,
)


class _FailingSink:
    def emit(self, envelope: TelemetryEnvelope) -> None:
        raise OSError("sink down")

    def close(self) -> None:
        return


class TestTelemetry(unittest.TestCase):
    def test_dataclass_event_goes_through_queue_sink(self):
        queue: "Queue[TelemetryEnvelope]" = Queue()
        sink = QueueTelemetrySink(queue)
        emit_dataclass_event(
            sink,
            "move_applied",
            MoveAppliedEvent(kind="sow", player=0, house=2, movements=4, seeds=4),
        )
        envelope = queue.get_nowait()
        self.assertEqual(envelope.event, "move_applied")
        self.assertEqual(envelope.data["kind"], "sow")
        self.assertEqual(envelope.data["house"], 2)
        self.assertGreater(envelope.ts_ms, 0)

    def test_emit_without_sink_is_a_no_op(self):
        emit_event(None, "search_start", {"player": 0})
        emit_event(NullTelemetrySink(), "search_start", {"player": 0})

    def test_sink_errors_do_not_propagate(self):
        emit_event(_FailingSink(), "search_end", {"nodes": 1})

    def test_callback_sink(self):
        seen = []
        emit_event(CallbackTelemetrySink(seen.append), "game_over", {"winner": None})
        self.assertEqual(len(seen), 1)
        self.assertIsNone(seen[0].data["winner"])

    def test_encode_envelope_is_one_json_line(self):
        raw = encode_envelope(TelemetryEnvelope(event="node_batch", ts_ms=5, data={"nodes_total": 10}))
        self.assertTrue(raw.endswith(b"\n"))
        self.assertEqual(raw.count(b"\n"), 1)
        payload = json.loads(raw.decode("utf-8"))
        self.assertEqual(payload, {"event": "node_batch", "ts_ms": 5, "data": {"nodes_total": 10}})

    def test_parse_host_port(self):
        self.assertEqual(parse_host_port("127.0.0.1:8765"), ("127.0.0.1", 8765))
        self.assertEqual(parse_host_port(" localhost:1 "), ("localhost", 1))
        self.assertIsNone(parse_host_port(""))
        self.assertIsNone(parse_host_port("localhost"))
        self.assertIsNone(parse_host_port(":80"))
        self.assertIsNone(parse_host_port("host:abc"))
        self.assertIsNone(parse_host_port("host:70000"))


if __name__ == "__main__":
    unittest.main()
