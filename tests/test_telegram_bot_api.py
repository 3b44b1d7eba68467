from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from adapters.telegram_bot_api import BotApiClient, TelegramApiError
from adapters.telegram_gateway import TelegramChatGateway
from adapters.telegram_updates import BotApiUpdateSource
from core.enforcement import EnforcementGateway
from core.errors import EnforcementError

TOKEN = "123:secret"


def _message(message_id: int) -> dict:
    return {
        "message_id": message_id,
        "date": 1704067200,
        "chat": {"id": -1001, "type": "group", "title": "Deals"},
        "from": {"id": 42},
        "text": f"message {message_id}",
    }


class BotApiRecorder:
    """MockTransport handler that replays canned results per method."""

    def __init__(self, results: dict[str, list]) -> None:
        self.results = results
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        payload = json.loads(request.content) if request.content else {}
        self.calls.append((method, payload))
        queue = self.results.get(method) or [{"ok": True, "result": True}]
        body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(200 if body.get("ok") else 400, json=body)


def _api(recorder: BotApiRecorder) -> BotApiClient:
    return BotApiClient(TOKEN, http_client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)))


def test_call_unwraps_result_and_uses_token_in_path() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"ok": True, "result": {"status": "creator"}})

    api = BotApiClient(TOKEN, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    result = asyncio.run(api.get_chat_member(-1001, 42))

    assert result == {"status": "creator"}
    assert seen == [f"/bot{TOKEN}/getChatMember"]


def test_error_envelope_raises_enforcement_error() -> None:
    recorder = BotApiRecorder(
        {"deleteMessage": [{"ok": False, "error_code": 400, "description": "message can't be deleted"}]}
    )

    with pytest.raises(TelegramApiError) as excinfo:
        asyncio.run(_api(recorder).delete_message(-1001, 5))

    assert isinstance(excinfo.value, EnforcementError)
    assert excinfo.value.error_code == 400
    assert "message can't be deleted" in str(excinfo.value)


def test_transport_error_does_not_leak_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"failed to reach {request.url}", request=request)

    api = BotApiClient(TOKEN, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(TelegramApiError) as excinfo:
        asyncio.run(api.send_message(-1001, "hi"))

    assert TOKEN not in str(excinfo.value)


def test_gateway_maps_send_options() -> None:
    recorder = BotApiRecorder({})
    gateway = TelegramChatGateway(_api(recorder))

    asyncio.run(gateway.send_message(-1001, "notice", silent=True, reply_to=31))

    method, payload = recorder.calls[0]
    assert method == "sendMessage"
    assert payload["disable_notification"] is True
    assert payload["reply_parameters"]["message_id"] == 31


def test_enforcement_gateway_over_bot_api_fails_safe() -> None:
    recorder = BotApiRecorder(
        {
            "getChatMember": [{"ok": False, "error_code": 400, "description": "user not found"}],
            "deleteMessage": [{"ok": False, "error_code": 403, "description": "not enough rights"}],
        }
    )
    gateway = EnforcementGateway(TelegramChatGateway(_api(recorder)))

    assert asyncio.run(gateway.is_admin(-1001, 42)) is False
    assert asyncio.run(gateway.delete_message(-1001, 5)) is False


def test_backlog_fetch_and_acknowledge_payloads() -> None:
    recorder = BotApiRecorder(
        {
            "getUpdates": [
                {"ok": True, "result": [{"update_id": 7, "message": _message(1)}, {"update_id": 8}]},
                {"ok": True, "result": []},
            ]
        }
    )
    source = BotApiUpdateSource(_api(recorder))

    async def scenario():
        fetched = await source.fetch_backlog(20)
        await source.acknowledge(9)
        return fetched

    updates = asyncio.run(scenario())

    assert [update.update_id for update in updates] == [7, 8]
    assert updates[0].event is not None
    assert updates[1].event is None
    fetch_payload = recorder.calls[0][1]
    assert fetch_payload == {"limit": 20, "timeout": 0, "allowed_updates": ["message"]}
    ack_payload = recorder.calls[1][1]
    assert ack_payload == {"offset": 9, "limit": 1, "timeout": 0}


def test_stream_advances_offset_and_stops() -> None:
    recorder = BotApiRecorder(
        {
            "getUpdates": [
                {"ok": True, "result": [{"update_id": 10, "message": _message(1)}]},
                {"ok": True, "result": [{"update_id": 11, "message": _message(2)}]},
                {"ok": True, "result": []},
            ]
        }
    )
    source = BotApiUpdateSource(_api(recorder), poll_timeout=0)

    async def consume() -> list[int]:
        seen = []
        async for update in source.stream():
            seen.append(update.update_id)
            if len(seen) == 2:
                source.stop()
        return seen

    seen = asyncio.run(consume())

    assert seen == [10, 11]
    offsets = [payload.get("offset") for method, payload in recorder.calls if method == "getUpdates"]
    assert offsets == [None, 11]


def test_stream_retries_after_polling_error() -> None:
    recorder = BotApiRecorder(
        {
            "getUpdates": [
                {"ok": False, "error_code": 502, "description": "Bad Gateway"},
                {"ok": True, "result": [{"update_id": 3, "message": _message(1)}]},
                {"ok": True, "result": []},
            ]
        }
    )
    source = BotApiUpdateSource(_api(recorder), poll_timeout=0, retry_delay_seconds=0)

    async def consume() -> list[int]:
        seen = []
        async for update in source.stream():
            seen.append(update.update_id)
            source.stop()
        return seen

    assert asyncio.run(consume()) == [3]


def test_stop_discards_rest_of_current_batch() -> None:
    recorder = BotApiRecorder(
        {
            "getUpdates": [
                {
                    "ok": True,
                    "result": [
                        {"update_id": 20, "message": _message(1)},
                        {"update_id": 21, "message": _message(2)},
                        {"update_id": 22, "message": _message(3)},
                    ],
                },
                {"ok": True, "result": []},
            ]
        }
    )
    source = BotApiUpdateSource(_api(recorder), poll_timeout=0)

    async def consume() -> list[int]:
        seen = []
        async for update in source.stream():
            seen.append(update.update_id)
            source.stop()
        return seen

    assert asyncio.run(consume()) == [20]
