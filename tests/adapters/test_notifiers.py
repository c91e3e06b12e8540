"""Tests for the log and webhook notifiers."""

import pytest
from unittest.mock import AsyncMock, patch

from hrflow.adapters.notify.log_notifier import LogNotifier
from hrflow.adapters.notify.webhook_notifier import WebhookNotifier


def _mock_aiohttp_session(statuses, calls):
    """Replace aiohttp.ClientSession; each post() answers with the next status."""
    idx = 0

    class FakeResponse:
        def __init__(self, status):
            self.status = status

        async def text(self):
            return "error body"

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    class FakeSession:
        def __init__(self, **kwargs):
            pass

        def post(self, url, json=None, headers=None):
            nonlocal idx
            calls.append({"url": url, "json": json, "headers": headers})
            resp = FakeResponse(statuses[idx])
            idx += 1
            return resp

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    return FakeSession


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_records_messages(self):
        notifier = LogNotifier()
        assert await notifier.send("a@x.com", "Hi", "Body") is True
        assert notifier.sent == [("a@x.com", "Hi", "Body")]


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_unconfigured_drops(self):
        notifier = WebhookNotifier("")
        assert notifier.is_configured is False
        assert await notifier.send("a@x.com", "Hi", "Body") is False

    @pytest.mark.asyncio
    async def test_posts_json_with_token(self):
        calls = []
        notifier = WebhookNotifier("https://relay.test/hook", token="secret")
        with patch("hrflow.adapters.notify.webhook_notifier.aiohttp.ClientSession", _mock_aiohttp_session([200], calls)):
            assert await notifier.send("a@x.com", "Hi", "Body") is True
        assert calls[0]["json"] == {"to": "a@x.com", "subject": "Hi", "body": "Body"}
        assert calls[0]["headers"]["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []
        notifier = WebhookNotifier("https://relay.test/hook", max_retries=3)
        with patch("hrflow.adapters.notify.webhook_notifier.aiohttp.ClientSession", _mock_aiohttp_session([503, 429, 200], calls)), \
                patch("hrflow.adapters.notify.webhook_notifier.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await notifier.send("a@x.com", "Hi", "Body") is True
        assert len(calls) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []
        notifier = WebhookNotifier("https://relay.test/hook")
        with patch("hrflow.adapters.notify.webhook_notifier.aiohttp.ClientSession", _mock_aiohttp_session([400], calls)):
            assert await notifier.send("a@x.com", "Hi", "Body") is False
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        calls = []
        notifier = WebhookNotifier("https://relay.test/hook", max_retries=2)
        with patch("hrflow.adapters.notify.webhook_notifier.aiohttp.ClientSession", _mock_aiohttp_session([500, 500], calls)), \
                patch("hrflow.adapters.notify.webhook_notifier.asyncio.sleep", new_callable=AsyncMock):
            assert await notifier.send("a@x.com", "Hi", "Body") is False
        assert len(calls) == 2
