# tests/test_notifier.py

"""Tests for push notification fan-out and the FCM sink."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from pricewatch.config.settings import Settings
from pricewatch.models.tracked_product import (
    PRICE_DROP,
    THRESHOLD_REACHED,
    TrackedProduct,
)
from pricewatch.notify.notifier import Notifier
from pricewatch.notify.push_sink import (
    DELIVERED,
    FAILED,
    INVALID_TOKEN,
    FcmPushSink,
    PushSink,
)


def _notified_product(kind: str = PRICE_DROP) -> TrackedProduct:
    return TrackedProduct(
        owner_id="owner-1",
        url="https://www.amazon.in/dp/B0ABCDE123",
        price="₹900",
        title="Some Phone",
        id=3,
        has_notification=True,
        notification_type=kind,
        notification_message="Some Phone dropped from ₹1,000 to ₹900.",
    )


class TestNotifier(unittest.TestCase):
    """Delivery to every device, pruning rejected tokens."""

    def setUp(self) -> None:
        self.store = MagicMock()
        self.store.get_device_tokens.return_value = ["tok-a", "tok-b"]
        self.sink = MagicMock(spec=PushSink)
        self.sink.send.return_value = DELIVERED
        self.notifier = Notifier(self.store, self.sink)

    def test_delivers_to_every_token(self) -> None:
        delivered = self.notifier.notify_product(_notified_product())
        self.assertEqual(delivered, 2)
        self.assertEqual(self.sink.send.call_count, 2)
        token, title, body, data = self.sink.send.call_args.args
        self.assertEqual(token, "tok-b")
        self.assertEqual(title, "Price drop")
        self.assertIn("₹900", body)
        self.assertEqual(data["productId"], "3")
        self.assertEqual(data["type"], PRICE_DROP)

    def test_threshold_title(self) -> None:
        self.notifier.notify_product(_notified_product(THRESHOLD_REACHED))
        self.assertEqual(
            self.sink.send.call_args.args[1], "Target price reached"
        )

    def test_prunes_invalid_token(self) -> None:
        self.sink.send.side_effect = [INVALID_TOKEN, DELIVERED]
        delivered = self.notifier.notify_product(_notified_product())
        self.assertEqual(delivered, 1)
        self.store.remove_device_token.assert_called_once_with(
            "owner-1", "tok-a"
        )

    def test_failed_send_keeps_token(self) -> None:
        self.sink.send.return_value = FAILED
        self.assertEqual(self.notifier.notify_product(_notified_product()), 0)
        self.store.remove_device_token.assert_not_called()

    def test_sink_exception_is_swallowed(self) -> None:
        self.sink.send.side_effect = [RuntimeError("boom"), DELIVERED]
        self.assertEqual(self.notifier.notify_product(_notified_product()), 1)

    def test_no_pending_notification(self) -> None:
        product = _notified_product()
        product.clear_notification()
        self.assertEqual(self.notifier.notify_product(product), 0)
        self.sink.send.assert_not_called()

    def test_without_sink_only_logs(self) -> None:
        notifier = Notifier(self.store, None)
        self.assertEqual(notifier.notify_product(_notified_product()), 0)
        self.store.get_device_tokens.assert_not_called()


@patch("pricewatch.notify.push_sink.curl_requests.Session")
class TestFcmPushSink(unittest.TestCase):
    """FCM HTTP v1 responses map to delivery outcomes."""

    def _sink(self) -> FcmPushSink:
        return FcmPushSink(project_id="demo-project", access_token="secret")

    def _respond(
        self, mock_session_cls: MagicMock, status: int, text: str = "",
    ) -> MagicMock:
        resp = MagicMock()
        resp.status_code = status
        resp.text = text
        mock_session_cls.return_value.post.return_value = resp
        return mock_session_cls.return_value

    def test_configured(self, mock_session_cls: MagicMock) -> None:
        sink = self._sink()
        self.assertTrue(sink.configured)
        sink.access_token = ""
        self.assertFalse(sink.configured)

    def test_delivered(self, mock_session_cls: MagicMock) -> None:
        session = self._respond(mock_session_cls, 200, "{}")
        outcome = self._sink().send("tok", "Title", "Body", {"productId": "3"})

        self.assertEqual(outcome, DELIVERED)
        url = session.post.call_args.args[0]
        self.assertIn("projects/demo-project/messages:send", url)
        kwargs = session.post.call_args.kwargs
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        message = kwargs["json"]["message"]
        self.assertEqual(message["token"], "tok")
        self.assertEqual(message["data"], {"productId": "3"})

    def test_unregistered_token(self, mock_session_cls: MagicMock) -> None:
        self._respond(
            mock_session_cls,
            404,
            '{"error": {"status": "NOT_FOUND", "details": '
            '[{"errorCode": "UNREGISTERED"}]}}',
        )
        self.assertEqual(
            self._sink().send("tok", "T", "B", {}), INVALID_TOKEN
        )

    def test_server_error_is_failed(self, mock_session_cls: MagicMock) -> None:
        self._respond(mock_session_cls, 500, "internal")
        self.assertEqual(self._sink().send("tok", "T", "B", {}), FAILED)

    def test_transport_error_is_failed(
        self, mock_session_cls: MagicMock,
    ) -> None:
        mock_session_cls.return_value.post.side_effect = RuntimeError("dns")
        self.assertEqual(self._sink().send("tok", "T", "B", {}), FAILED)

    def test_expired_token_reloaded_from_file(
        self, mock_session_cls: MagicMock,
    ) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            token_file = Path(tmp) / "fcm-token"
            token_file.write_text("fresh\n", encoding="utf-8")
            sink = FcmPushSink(
                project_id="demo-project",
                access_token="stale",
                token_file=token_file,
            )
            expired = MagicMock(status_code=401, text="UNAUTHENTICATED")
            ok = MagicMock(status_code=200, text="{}")
            session = mock_session_cls.return_value
            session.post.side_effect = [expired, ok]

            outcome = sink.send("tok", "T", "B", {})

        self.assertEqual(outcome, DELIVERED)
        auth = [
            c.kwargs["headers"]["Authorization"]
            for c in session.post.call_args_list
        ]
        self.assertEqual(auth, ["Bearer stale", "Bearer fresh"])

    def test_expired_token_without_file_fails_once(
        self, mock_session_cls: MagicMock,
    ) -> None:
        session = self._respond(mock_session_cls, 401, "UNAUTHENTICATED")
        sink = self._sink()
        sink.token_file = None
        self.assertEqual(sink.send("tok", "T", "B", {}), FAILED)
        self.assertEqual(session.post.call_count, 1)

    def test_token_read_from_file_when_unset(
        self, mock_session_cls: MagicMock,
    ) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            token_file = Path(tmp) / "fcm-token"
            token_file.write_text("from-file", encoding="utf-8")
            with patch.object(Settings, "FCM_ACCESS_TOKEN", ""):
                sink = FcmPushSink(
                    project_id="demo-project", token_file=token_file,
                )
        self.assertEqual(sink.access_token, "from-file")
        self.assertTrue(sink.configured)


if __name__ == "__main__":
    unittest.main()
