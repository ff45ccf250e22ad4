"""
Telegram bot client for delivering one-time codes.

Posts to the Bot API sendMessage endpoint. The destination is the chat
ID the user supplied at registration.
"""

import asyncio
import json
import logging

import requests

from auth.exceptions import DeliveryFailedError

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramCodeDelivery:
    """CodeDelivery over the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        app_name: str = "Connecta",
        api_url: str = TELEGRAM_API_URL,
        timeout: float = 10,
    ):
        """
        Initialize with bot credentials.

        Args:
            bot_token: Telegram bot token
            app_name: Shown in the message heading
            api_url: Bot API base URL
            timeout: Request timeout in seconds

        Raises:
            ValueError: If bot_token is empty
        """
        if not bot_token:
            raise ValueError("bot_token is required")

        self.send_url = f"{api_url.rstrip('/')}/bot{bot_token}/sendMessage"
        self.app_name = app_name
        self.timeout = timeout

    def _message(self, code: str) -> str:
        return (
            f"*{self.app_name} Verification Code*\n\n"
            f"Your verification code is:\n\n*{code}*\n\n"
            "If you didn't request this code, please ignore this message."
        )

    def send_sync(self, destination: str, code: str) -> None:
        """
        Send code to a chat, blocking.

        Raises:
            DeliveryFailedError: On any failure
        """
        if not destination:
            raise DeliveryFailedError("destination is required")

        payload = {
            "chat_id": destination,
            "text": self._message(code),
            "parse_mode": "Markdown",
        }

        try:
            response = requests.post(self.send_url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Telegram connection failed: {type(e).__name__}")
            raise DeliveryFailedError("Connection to Telegram failed") from e

        try:
            result = response.json()
        except json.JSONDecodeError:
            logger.error(f"Telegram returned invalid JSON (status {response.status_code})")
            raise DeliveryFailedError("Invalid response from Telegram")

        if response.status_code != 200 or not result.get("ok"):
            description = result.get("description", "Unknown error")
            logger.error(f"Telegram API error: {description}")
            raise DeliveryFailedError(f"Telegram error: {description}")

        logger.info(f"Verification code sent to chat {destination}")

    async def send(self, destination: str, code: str) -> None:
        """
        Send code without blocking the event loop.

        Raises:
            DeliveryFailedError: On any failure
        """
        await asyncio.to_thread(self.send_sync, destination, code)
