"""Tests for NotificationDispatcher against a mocked Omi API."""

import httpx
import pytest

from omi_relay.errors import ConfigurationError, NetworkError, UpstreamError
from omi_relay.notifier import NotificationDispatcher


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response=None, exc=None):
        self.response = response or httpx.Response(200, json={"ok": True})
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return self.response


def dispatcher(recorder, **kwargs):
    opts = {"app_id": "app-123", "app_secret": "secret-xyz", "api_base": "https://omi.test/"}
    opts.update(kwargs)
    return NotificationDispatcher(transport=httpx.MockTransport(recorder), **opts)


class TestSend:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        rec = Recorder()
        status = await dispatcher(rec).send("user-1", "The answer is 4.")

        assert status == 200
        assert len(rec.requests) == 1
        req = rec.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/v2/integrations/app-123/notification"
        assert req.url.params["uid"] == "user-1"
        assert req.url.params["message"] == "The answer is 4."
        assert req.headers["authorization"] == "Bearer secret-xyz"
        assert req.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_rejection_is_upstream_error_and_not_retried(self):
        rec = Recorder(httpx.Response(401, json={"detail": "bad secret"}))
        with pytest.raises(UpstreamError) as exc:
            await dispatcher(rec).send("user-1", "hi")

        assert len(rec.requests) == 1
        assert exc.value.service == "omi"
        assert exc.value.status == 401
        assert exc.value.details["body"] == {"detail": "bad secret"}
        assert exc.value.to_dict()["error"] == "API Error"

    @pytest.mark.asyncio
    async def test_rejection_with_text_body(self):
        rec = Recorder(httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(UpstreamError) as exc:
            await dispatcher(rec).send("user-1", "hi")
        assert exc.value.body == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_network_failure(self):
        rec = Recorder(exc=httpx.ConnectError("refused"))
        with pytest.raises(NetworkError) as exc:
            await dispatcher(rec).send("user-1", "hi")
        assert exc.value.details["service"] == "omi"

    @pytest.mark.asyncio
    async def test_missing_app_id(self):
        rec = Recorder()
        with pytest.raises(ConfigurationError, match="OMI_APP_ID"):
            await dispatcher(rec, app_id=None).send("user-1", "hi")
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_missing_secret(self):
        rec = Recorder()
        with pytest.raises(ConfigurationError, match="OMI_APP_SECRET"):
            await dispatcher(rec, app_secret="").send("user-1", "hi")
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        d = dispatcher(Recorder())
        await d.send("user-1", "hi")
        await d.close()
        await d.close()
        assert d._client is None


def test_from_config(config):
    d = NotificationDispatcher.from_config(config)
    assert d.app_id == "app-123"
    assert d.notification_url() == "https://api.omi.me/v2/integrations/app-123/notification"
