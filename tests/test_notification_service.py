"""Tests for TelegramNotificationService routing."""

import asyncio

from portfolio_monitor.config import Credentials, NotificationsConfig
from portfolio_monitor.models import MonitorSettings, Notification
from portfolio_monitor.services.notification_service import TelegramNotificationService
from portfolio_monitor.store import InMemoryStateStore, MonitorRepository


def make_service(enabled=True, channel="@portfolio", settings=None):
    repository = MonitorRepository(InMemoryStateStore())
    if settings is not None:
        asyncio.run(repository.save_settings(settings))

    credentials = Credentials(
        okx_api_key="key", okx_api_secret_key="secret", okx_api_passphrase="phrase",
        telegram_bot_token="123:abc", authorized_user_id=42, target_channel_id=channel,
    )
    service = TelegramNotificationService(NotificationsConfig(enabled=enabled), credentials, repository)

    sent = []

    async def record(method, payload):
        sent.append((method, payload))

    service._send_telegram = record
    return service, sent


class TestDispatch:

    def test_private_notification_goes_to_user_only(self):
        service, sent = make_service(settings=MonitorSettings(auto_post_to_channel=True))

        asyncio.run(service.dispatch(Notification(text="hello")))

        assert sent == [("sendMessage", {"chat_id": 42, "text": "hello", "parse_mode": "Markdown"})]

    def test_broadcast_goes_to_channel_when_auto_post_is_on(self):
        service, sent = make_service(settings=MonitorSettings(auto_post_to_channel=True))

        asyncio.run(service.dispatch(Notification(text="closed", broadcast=True)))

        assert [payload["chat_id"] for _, payload in sent] == [42, "@portfolio"]

    def test_broadcast_stays_private_when_auto_post_is_off(self):
        service, sent = make_service()

        asyncio.run(service.dispatch(Notification(text="closed", broadcast=True)))

        assert [payload["chat_id"] for _, payload in sent] == [42]

    def test_photo_uses_send_photo(self):
        service, sent = make_service()

        asyncio.run(service.dispatch(Notification(text="chart", photo_url="https://example.com/c.png")))

        method, payload = sent[0]
        assert method == "sendPhoto"
        assert payload["caption"] == "chart"

    def test_disabled_service_sends_nothing(self):
        service, sent = make_service(enabled=False)
        asyncio.run(service.dispatch(Notification(text="hello")))
        assert sent == []

    def test_delivery_failure_is_swallowed(self):
        service, _ = make_service()

        async def fail(method, payload):
            raise RuntimeError("connection reset")

        service._send_telegram = fail
        asyncio.run(service.dispatch(Notification(text="hello")))


class TestDebugMessages:

    def test_sent_only_in_debug_mode(self):
        quiet, quiet_sent = make_service()
        verbose, verbose_sent = make_service(settings=MonitorSettings(debug_mode=True))

        asyncio.run(quiet.send_debug("cycle failed"))
        asyncio.run(verbose.send_debug("cycle failed"))

        assert quiet_sent == []
        assert "cycle failed" in verbose_sent[0][1]["text"]
