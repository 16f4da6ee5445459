"""Notification Service - Delivers monitor notifications through the Telegram Bot API"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

import aiohttp

from portfolio_monitor.config import Credentials, NotificationsConfig
from portfolio_monitor.models import Notification
from portfolio_monitor.store.repository import MonitorRepository


class TelegramNotificationService:
    """Best-effort delivery: failures are logged and never raised to the caller"""

    def __init__(
        self,
        config: NotificationsConfig,
        credentials: Credentials,
        repository: MonitorRepository,
        logger: Optional[logging.Logger] = None
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.repository = repository
        self.enabled = config.enabled
        self.bot_token = credentials.telegram_bot_token
        self.recipient_id = credentials.authorized_user_id
        self.channel_id = credentials.target_channel_id

    async def dispatch(self, notification: Notification):
        """Send to the authorized user and, for broadcast messages, to the channel"""
        if not self.enabled:
            self.logger.info(f"Notifications disabled, skipping: {notification.text[:80]!r}")
            return

        try:
            await self._deliver(self.recipient_id, notification)

            if notification.broadcast and self.channel_id:
                settings = await self.repository.get_settings()
                if settings.auto_post_to_channel:
                    await self._deliver(self.channel_id, notification)
        except Exception as e:
            self.logger.error(f"Failed to dispatch notification: {e}")

    async def send_debug(self, message: str):
        """Diagnostic message, only delivered while debug mode is on"""
        try:
            settings = await self.repository.get_settings()
            if not settings.debug_mode:
                return
            await self.dispatch(Notification(text=f"🐞 *Debug:* {message}"))
        except Exception as e:
            self.logger.error(f"Failed to send debug message: {e}")

    async def _deliver(self, chat_id: Union[int, str], notification: Notification):
        if notification.photo_url:
            method = "sendPhoto"
            payload: Dict[str, Any] = {
                "chat_id": chat_id,
                "photo": notification.photo_url,
                "caption": notification.text,
            }
        else:
            method = "sendMessage"
            payload = {"chat_id": chat_id, "text": notification.text}

        if notification.parse_mode:
            payload["parse_mode"] = notification.parse_mode

        await self._send_telegram(method, payload)

    async def _send_telegram(self, method: str, payload: Dict[str, Any]):
        """POST one Bot API call"""
        url = f"{self.config.api_base_url}/bot{self.bot_token}/{method}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
                ) as response:
                    self.logger.debug(f"Telegram {method} response status: {response.status}")
                    if response.status != 200:
                        error_text = await response.text()
                        self.logger.error(
                            f"Failed to send notification to {payload['chat_id']}: {response.status} - {error_text}"
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Telegram {method} request failed: {e}")
