from unittest.mock import AsyncMock

import pytest
import socketio

from app.domain.realtime.events import EventType, MatchUpdatePayload
from app.domain.realtime.hub import RealtimeHub
from app.domain.realtime.sockets import RealtimeNamespace
from app.infra import jwt as jwt_helper

MATCHES = {"m1": ("user-1", "user-2")}


async def _participants(match_id):
	return MATCHES.get(match_id)


def _scope(headers=None) -> dict:
	return {"asgi.scope": {"headers": headers or []}}


def _namespace(publish=None):
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = RealtimeNamespace(_participants, publish or AsyncMock())
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	namespace.enter_room = AsyncMock()
	namespace.leave_room = AsyncMock()
	return namespace


async def _connect(namespace, user_id="user-1", sid="sid-1"):
	await namespace.trigger_event("connect", sid, _scope(), {"userId": user_id})


@pytest.mark.asyncio
async def test_connect_requires_identity():
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _scope(), None)
	assert namespace.sessions == {}


@pytest.mark.asyncio
async def test_connect_with_bearer_token_joins_user_room():
	namespace = _namespace()
	token = jwt_helper.encode_access({"sub": "user-9"})
	await namespace.trigger_event(
		"connect",
		"sid-1",
		_scope([(b"authorization", f"Bearer {token}".encode())]),
		None,
	)
	assert namespace.sessions["sid-1"].id == "user-9"
	namespace.enter_room.assert_awaited_once_with("sid-1", "user:user-9")
	events = [call.args[0] for call in namespace.emit.await_args_list]
	assert events == ["sys.ok"]


@pytest.mark.asyncio
async def test_invalid_token_is_refused():
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _scope(), {"token": "garbage"})


@pytest.mark.asyncio
async def test_subscribe_to_global_and_chat_channels():
	namespace = _namespace()
	await _connect(namespace)

	ack = await namespace.trigger_event("subscribe", "sid-1", {"event": "match_update"})
	assert ack == {"ok": True, "event": "match_update"}
	namespace.enter_room.assert_awaited_with("sid-1", "user:user-1|match_update")

	ack = await namespace.trigger_event("subscribe", "sid-1", {"event": "chat:m1:typing"})
	assert ack["ok"] is True


@pytest.mark.asyncio
async def test_subscribe_rejects_unknown_and_foreign_channels():
	namespace = _namespace()
	await _connect(namespace, user_id="user-3")
	assert (await namespace.trigger_event("subscribe", "sid-1", {"event": "weather"}))["error"] == "unknown_event"
	assert (await namespace.trigger_event("subscribe", "sid-1", {"event": "chat:m1"}))["error"] == "forbidden"
	assert (await namespace.trigger_event("subscribe", "sid-1", {"event": "chat:nope"}))["error"] == "forbidden"


@pytest.mark.asyncio
async def test_chat_message_relays_to_both_participants():
	publish = AsyncMock()
	namespace = _namespace(publish)
	await _connect(namespace)

	ack = await namespace.trigger_event("chat_message", "sid-1", {"match_id": "m1", "body": "hi"})
	assert ack == {"ok": True}
	event, payload, recipients = publish.await_args.args
	assert event is EventType.CHAT_MESSAGE
	assert payload.sender_id == "user-1"
	assert recipients == ["user-1", "user-2"]


@pytest.mark.asyncio
async def test_chat_rejects_empty_body_and_outsiders():
	publish = AsyncMock()
	namespace = _namespace(publish)
	await _connect(namespace)
	await _connect(namespace, user_id="user-3", sid="sid-2")

	assert (await namespace.trigger_event("chat_message", "sid-1", {"match_id": "m1", "body": ""}))["error"] == "invalid_payload"
	assert (await namespace.trigger_event("typing", "sid-2", {"match_id": "m1"}))["error"] == "forbidden"
	publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_hub_delivers_to_subscribed_room():
	namespace = _namespace()
	hub = RealtimeHub()
	hub.bind(namespace)
	payload = MatchUpdatePayload(
		match_id="m1",
		user_id="user-1",
		matched_user_id="user-2",
		status="accepted",
		version=2,
		score=54,
		updated_at="2024-01-15T12:00:00+00:00",
	)
	await hub.publish(EventType.MATCH_UPDATE, payload, user_ids=["user-1", "user-2"])
	rooms = [call.kwargs["room"] for call in namespace.emit.await_args_list]
	assert rooms == ["user:user-1|match_update", "user:user-2|match_update"]
	assert namespace.emit.await_args_list[0].args[0] == "match_update"


@pytest.mark.asyncio
async def test_disconnect_forgets_session():
	namespace = _namespace()
	await _connect(namespace)
	await namespace.trigger_event("disconnect", "sid-1", "client disconnect")
	assert "sid-1" not in namespace.sessions
