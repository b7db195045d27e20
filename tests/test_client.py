"""Integration tests for SymNetClient over a fake connection."""

import unittest
from concurrent.futures import TimeoutError as FutureTimeout
from unittest.mock import Mock

from symnet.client import SymNetClient
from symnet.errors import NotReadyError, ReplyTimeoutError, ValidationError
from symnet.models import ControlValue
from symnet.sequencer import SequencerState


class FakeConnection:
    """In-memory stand-in for ComposerConnection."""

    def __init__(self, ready=True):
        self.ready = ready
        self.sent = []
        self._data_callbacks = []
        self._connected_callbacks = []

    def connect(self):
        self.ready = True
        for callback in list(self._connected_callbacks):
            callback()
        return True

    def disconnect(self):
        self.ready = False

    def is_connected(self):
        return self.ready

    def write(self, data):
        if not self.ready:
            raise NotReadyError("Could not send, socket not ready")
        self.sent.append(data)

    def subscribe_data(self, callback):
        self._data_callbacks.append(callback)
        return lambda: self._data_callbacks.remove(callback)

    def subscribe_connected(self, callback):
        self._connected_callbacks.append(callback)
        return lambda: self._connected_callbacks.remove(callback)

    def receive(self, *chunks):
        for chunk in chunks:
            for callback in list(self._data_callbacks):
                callback(chunk)


class ClientTestCase(unittest.TestCase):

    def setUp(self):
        self.conn = FakeConnection()
        self.client = SymNetClient("192.168.1.50", connection=self.conn)

    def tearDown(self):
        self.client.disconnect()


class TestClientInit(unittest.TestCase):

    def test_bad_host(self):
        with self.assertRaises(ValueError):
            SymNetClient("not-an-ip", connection=FakeConnection())

    def test_ipv6_host_rejected(self):
        with self.assertRaises(ValueError):
            SymNetClient("::1", connection=FakeConnection())

    def test_creates_connection(self):
        client = SymNetClient("192.168.1.50", port=5000, retry_timeout=0)
        self.assertEqual(client._connection.url, "socket://192.168.1.50:5000")
        self.assertFalse(client.is_connected())


class TestClientScenarios(ClientTestCase):
    """End-to-end request/reply scenarios."""

    def test_control_get(self):
        future = self.client.control_get(1000)
        self.assertEqual(self.conn.sent, [b"$q GS2 1000\r"])

        self.conn.receive(b"1000 04096\r")

        self.assertEqual(future.result(timeout=1), 4096)

    def test_control_set_nak(self):
        future = self.client.control_set(1, 70)
        self.conn.receive(b"NAK\r")
        self.assertIs(future.result(timeout=1), False)

    def test_control_change_ack(self):
        future = self.client.control_change(5, -300)
        self.assertEqual(self.conn.sent, [b"$q CC 5 0 300\r"])
        self.conn.receive(b"ACK\r")
        self.assertIs(future.result(timeout=1), True)

    def test_block_get(self):
        future = self.client.control_get_block(1000, 3)
        self.conn.receive(b"GSB3 01000 00003\r#01000=00001\r#01001=00002\r#01002=00003\r")

        self.assertEqual(future.result(timeout=1), [
            ControlValue(1000, 1), ControlValue(1001, 2), ControlValue(1002, 3),
        ])

    def test_system_string(self):
        future = self.client.get_system_string("SPEED_DIAL_1")
        self.conn.receive(b"GSYSS Front Desk\r")
        self.assertEqual(future.result(timeout=1), "Front Desk")

    def test_system_string_non_ascii(self):
        set_future = self.client.set_system_string("SPEED_DIAL_1", "Caf\u00e9")
        self.assertEqual(self.conn.sent, ["$q SSYSS SPEED_DIAL_1=Caf\u00e9\r".encode("utf-8")])
        self.conn.receive(b"ACK\r")
        self.assertIs(set_future.result(timeout=1), True)

        get_future = self.client.get_system_string("SPEED_DIAL_1")
        self.conn.receive("GSYSS Caf\u00e9\r".encode("utf-8"))
        self.assertEqual(get_future.result(timeout=1), "Caf\u00e9")

    def test_system_string_reply_with_trailing_records(self):
        future = self.client.get_system_string("SPEED_DIAL_1")
        self.conn.receive(b"GSYSS Lobby\r#01000=00001\r")
        self.assertEqual(future.result(timeout=1), "Lobby")
        self.assertEqual(self.client.sequencer.state, SequencerState.IDLE)

    def test_get_preset(self):
        future = self.client.get_preset()
        self.conn.receive(b"12\r")
        self.assertEqual(future.result(timeout=1), 12)

    def test_operations_send_expected_commands(self):
        self.client.load_preset(7)
        self.client.set_system_string("SPEED_DIAL_1", "Lobby")
        self.client.flash_unit()
        self.client.reboot()
        self.client.push_state(True)
        self.client.get_push_enabled(10, 20)
        self.client.push_refresh()
        self.client.push_clear(low=3, high=3)
        self.client.push_interval(250)
        self.client.push_threshold(meter=100, other=2)

        # One at a time: acknowledge each to release the next
        for _ in range(10):
            self.conn.receive(b"ACK\r")

        self.assertEqual(self.conn.sent, [
            b"$q LP 7\r",
            b"$q SSYSS SPEED_DIAL_1=Lobby\r",
            b"$q FU\r",
            b"$q R!\r",
            b"$q PUE 1 10000\r",
            b"$q GPU 10 20\r",
            b"$q PUR 1 10000\r",
            b"$q PUC 3 3\r",
            b"$q PUI 250\r",
            b"$q PUT 2 100\r",
        ])


class TestClientPushes(ClientTestCase):
    """Tests for push delivery and disambiguation."""

    def test_push_when_idle(self):
        pushes = []
        self.client.subscribe_push(pushes.append)

        self.conn.receive(b"#01000=00010\r#01001=00020\r")

        self.assertEqual(pushes, [[ControlValue(1000, 10), ControlValue(1001, 20)]])

    def test_push_glued_to_reply(self):
        pushes = []
        self.client.subscribe_push(pushes.append)
        future = self.client.control_set(1000, 10)

        self.conn.receive(b"#02000=00001\rACK\r")

        self.assertEqual(pushes, [[ControlValue(2000, 1)]])
        self.assertIs(future.result(timeout=1), True)

    def test_unsubscribe_push(self):
        callback = Mock()
        unsubscribe = self.client.subscribe_push(callback)
        unsubscribe()

        self.conn.receive(b"#01000=00010\r")
        callback.assert_not_called()

    def test_fragmentation_gives_same_result(self):
        """Splitting a frame across reads yields the same classification."""
        frame = b"#02000=00007\rGSB3 01000 00002\r#01000=00005\r#01001=00006\r"
        expected_push = [[ControlValue(2000, 7)]]
        expected_reply = [ControlValue(1000, 5), ControlValue(1001, 6)]

        # Only the last chunk may end in CR
        every_byte = [i for i in range(1, len(frame)) if frame[i - 1:i] != b"\r"]
        for cuts in ([], [5], [14, 35, 50], [20, 33], every_byte):
            with self.subTest(cuts=cuts):
                pushes = []
                unsubscribe = self.client.subscribe_push(pushes.append)
                future = self.client.control_get_block(1000, 2)

                bounds = [0] + cuts + [len(frame)]
                self.conn.receive(*[frame[a:b] for a, b in zip(bounds, bounds[1:])])

                self.assertEqual(pushes, expected_push)
                self.assertEqual(future.result(timeout=1), expected_reply)
                unsubscribe()


class TestClientOrdering(ClientTestCase):

    def test_results_in_submission_order(self):
        order = []
        futures = [self.client.control_get(i) for i in (1, 2, 3)]
        for i, future in enumerate(futures):
            future.add_done_callback(lambda f, i=i: order.append(i))

        self.conn.receive(b"1 00010\r")
        self.conn.receive(b"#00009=00009\r")
        self.conn.receive(b"2 00020\r", b"3 00030\r")

        self.assertEqual(order, [0, 1, 2])
        self.assertEqual([f.result(timeout=1) for f in futures], [10, 20, 30])

    def test_only_one_command_on_the_wire(self):
        self.client.flash_unit()
        self.client.flash_unit()
        self.assertEqual(len(self.conn.sent), 1)
        self.assertEqual(self.client.sequencer.state, SequencerState.AWAITING_RESPONSE)


class TestClientTimeout(unittest.TestCase):

    def setUp(self):
        self.conn = FakeConnection()
        self.client = SymNetClient("192.168.1.50", connection=self.conn, no_response_timeout=0.2)

    def tearDown(self):
        self.client.disconnect()

    def test_lost_reply_fails_future_and_releases_queue(self):
        with self.assertLogs("symnet.sequencer", level="WARNING"):
            lost = self.client.control_get(1)
            second = self.client.control_get(2)

            with self.assertRaises(ReplyTimeoutError):
                lost.result(timeout=2)

        self.assertEqual(self.conn.sent, [b"$q GS2 1\r", b"$q GS2 2\r"])
        self.conn.receive(b"2 00002\r")
        self.assertEqual(second.result(timeout=1), 2)


class TestClientValidation(ClientTestCase):
    """Invalid arguments fail synchronously without touching the queue."""

    def assertRejected(self, call, *args, **kwargs):
        with self.assertRaises(ValidationError):
            call(*args, **kwargs)
        self.assertEqual(self.conn.sent, [])
        self.assertEqual(self.client.sequencer.pending_count, 0)

    def test_control_ids(self):
        self.assertRejected(self.client.control_set, 0, 10)
        self.assertRejected(self.client.control_set, 10001, 10)
        self.assertRejected(self.client.control_get, "1000")
        self.assertRejected(self.client.control_get, True)
        self.assertRejected(self.client.control_get, 1.5)

    def test_control_values(self):
        self.assertRejected(self.client.control_set, 1, -1)
        self.assertRejected(self.client.control_set, 1, 65536)
        self.assertRejected(self.client.control_change, 1, -65536)
        self.assertRejected(self.client.control_change, 1, 65536)

    def test_block_size(self):
        self.assertRejected(self.client.control_get_block, 1, 0)
        self.assertRejected(self.client.control_get_block, 1, 257)

    def test_presets(self):
        self.assertRejected(self.client.load_preset, 0)
        self.assertRejected(self.client.load_preset, 1001)

    def test_strings(self):
        self.assertRejected(self.client.get_system_string, 5)
        self.assertRejected(self.client.set_system_string, "A", None)
        self.assertRejected(self.client.set_system_string, "A", "x\ry")
        self.assertRejected(self.client.set_system_string, "A", "\ud800")
        self.assertRejected(self.client.get_system_string, "SD\udc80")
        self.assertEqual(self.client.sequencer.state, SequencerState.IDLE)

    def test_push_arguments(self):
        self.assertRejected(self.client.push_state, 1)
        self.assertRejected(self.client.push_state, True, low=20, high=10)
        self.assertRejected(self.client.push_refresh, low=0)
        self.assertRejected(self.client.push_interval, 19)
        self.assertRejected(self.client.push_interval, 30001)
        self.assertRejected(self.client.push_threshold, meter="1")

    def test_boundaries_accepted(self):
        self.client.control_set(10000, 65535)
        self.client.control_change(1, -65535)
        self.client.control_get_block(1, 256)
        self.client.push_interval(20)
        self.assertEqual(len(self.conn.sent), 1)
        self.assertEqual(self.client.sequencer.pending_count, 3)


class TestClientReconnect(unittest.TestCase):
    """Commands submitted while disconnected are sent on (re)connect."""

    def setUp(self):
        self.conn = FakeConnection(ready=False)
        self.client = SymNetClient("192.168.1.50", connection=self.conn)

    def tearDown(self):
        self.client.disconnect()

    def test_queued_until_connected(self):
        connected = Mock()
        self.client.subscribe_connected(connected)

        with self.assertLogs("symnet.sequencer", level="WARNING"):
            first = self.client.control_get(1)
            self.client.control_get(2)
        self.assertEqual(self.conn.sent, [])

        self.client.connect()

        connected.assert_called_once_with()
        self.assertEqual(self.conn.sent, [b"$q GS2 1\r"])
        self.conn.receive(b"1 00001\r")
        self.assertEqual(first.result(timeout=1), 1)
        self.assertEqual(self.conn.sent, [b"$q GS2 1\r", b"$q GS2 2\r"])

    def test_stale_fragment_dropped_on_connect(self):
        self.conn.receive(b"#010")
        self.client.connect()

        future = self.client.control_set(1, 1)
        self.conn.receive(b"ACK\r")
        self.assertIs(future.result(timeout=1), True)

    def test_disconnect_fails_outstanding(self):
        with self.assertLogs("symnet.sequencer", level="WARNING"):
            future = self.client.flash_unit()
        self.client.disconnect()

        with self.assertRaises(ReplyTimeoutError):
            future.result(timeout=1)
        with self.assertRaises(FutureTimeout):
            self.client.control_get(1).result(timeout=0.01)


if __name__ == '__main__':
    unittest.main()
