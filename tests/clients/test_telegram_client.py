"""
Tests for TelegramCodeDelivery.

Uses the responses library for HTTP mocking.
"""

import json

import pytest
import requests
import responses

from auth.exceptions import DeliveryFailedError
from clients.telegram_client import TelegramCodeDelivery

BOT_TOKEN = "123:test-token"
SEND_URL = f"https://api.telegram.org/bot{BOT_TOKEN}/sendMessage"


@pytest.fixture
def delivery():
    return TelegramCodeDelivery(bot_token=BOT_TOKEN)


class TestTelegramCodeDeliveryInit:
    """Fail-fast on invalid config."""

    def test_init_rejects_empty_token(self):
        with pytest.raises(ValueError, match="bot_token"):
            TelegramCodeDelivery(bot_token="")

    def test_custom_api_url(self):
        delivery = TelegramCodeDelivery(bot_token=BOT_TOKEN, api_url="http://localhost:8081/")
        assert delivery.send_url == f"http://localhost:8081/bot{BOT_TOKEN}/sendMessage"


class TestSendSync:
    @responses.activate
    def test_successful_send(self, delivery):
        responses.add(responses.POST, SEND_URL, json={"ok": True, "result": {}}, status=200)

        delivery.send_sync("123456789", "482913")

        body = json.loads(responses.calls[0].request.body)
        assert body["chat_id"] == "123456789"
        assert "482913" in body["text"]
        assert body["parse_mode"] == "Markdown"

    @responses.activate
    def test_message_names_app(self):
        responses.add(responses.POST, SEND_URL, json={"ok": True}, status=200)

        TelegramCodeDelivery(bot_token=BOT_TOKEN, app_name="Acme").send_sync("1", "111111")

        body = json.loads(responses.calls[0].request.body)
        assert "Acme Verification Code" in body["text"]

    def test_empty_destination_fails_without_request(self, delivery):
        with responses.RequestsMock() as rsps:
            with pytest.raises(DeliveryFailedError):
                delivery.send_sync("", "482913")
            assert len(rsps.calls) == 0

    @responses.activate
    def test_api_error_raises_with_description(self, delivery):
        responses.add(
            responses.POST,
            SEND_URL,
            json={"ok": False, "description": "Bad Request: chat not found"},
            status=400,
        )

        with pytest.raises(DeliveryFailedError, match="chat not found"):
            delivery.send_sync("123456789", "482913")

    @responses.activate
    def test_ok_false_with_200_raises(self, delivery):
        responses.add(responses.POST, SEND_URL, json={"ok": False}, status=200)

        with pytest.raises(DeliveryFailedError):
            delivery.send_sync("123456789", "482913")

    @responses.activate
    def test_invalid_json_raises(self, delivery):
        responses.add(responses.POST, SEND_URL, body="<html>oops</html>", status=502)

        with pytest.raises(DeliveryFailedError, match="Invalid response"):
            delivery.send_sync("123456789", "482913")

    @responses.activate
    def test_connection_error_raises(self, delivery):
        responses.add(responses.POST, SEND_URL, body=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(DeliveryFailedError) as exc_info:
            delivery.send_sync("123456789", "482913")

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    @responses.activate
    def test_token_not_logged_on_failure(self, delivery, caplog):
        responses.add(responses.POST, SEND_URL, body=requests.exceptions.Timeout("slow"))

        with pytest.raises(DeliveryFailedError):
            delivery.send_sync("123456789", "482913")

        assert BOT_TOKEN not in caplog.text


@pytest.mark.asyncio
class TestSendAsync:
    async def test_send_runs_request(self, delivery):
        with responses.RequestsMock() as rsps:
            rsps.add(responses.POST, SEND_URL, json={"ok": True}, status=200)

            await delivery.send("123456789", "482913")

            assert len(rsps.calls) == 1

    async def test_send_propagates_failure(self, delivery):
        with responses.RequestsMock() as rsps:
            rsps.add(responses.POST, SEND_URL, json={"ok": False, "description": "blocked"}, status=403)

            with pytest.raises(DeliveryFailedError, match="blocked"):
                await delivery.send("123456789", "482913")
