"""
Входящие события: закрытый набор типов и разбор JSON-кадра.
Кадр: {"type": <event>, "data"?: any, "ack"?: int | str}.
"""
import json
from dataclasses import dataclass
from typing import Any, Union

from .constants import (
    ADMIN_GET_SERVER_INFO,
    ADMIN_LOGIN,
    CARD_CLICK,
    JOIN,
    MATCH,
    PLAYER_READY,
    RESTART_GAME,
    TURN_OVER,
)
from .pairing import JoinRequest


@dataclass(frozen=True)
class Join:
    request: JoinRequest


@dataclass(frozen=True)
class PlayerReady:
    pass


@dataclass(frozen=True)
class TurnOver:
    data: Any = None


@dataclass(frozen=True)
class Match:
    pass


@dataclass(frozen=True)
class CardClick:
    data: Any = None


@dataclass(frozen=True)
class RestartGame:
    pass


@dataclass(frozen=True)
class AdminLogin:
    secret: str


@dataclass(frozen=True)
class AdminGetServerInfo:
    token: str


@dataclass(frozen=True)
class UnknownEvent:
    name: str


@dataclass(frozen=True)
class MalformedEvent:
    reason: str


Event = Union[
    Join, PlayerReady, TurnOver, Match, CardClick, RestartGame,
    AdminLogin, AdminGetServerInfo, UnknownEvent, MalformedEvent,
]


@dataclass(frozen=True)
class Envelope:
    event: Event
    ack: int | str | None = None


def _join(data: Any) -> Event:
    # старые клиенты присылают просто имя
    if isinstance(data, str):
        return Join(JoinRequest(username=data))
    if not isinstance(data, dict):
        return MalformedEvent("join payload must be an object")
    session_id = data.get("sessionId")
    if session_id is not None and not isinstance(session_id, str):
        return MalformedEvent("sessionId must be a string")
    return Join(JoinRequest(
        username=str(data.get("username") or ""),
        is_invite=bool(data.get("isInvite", False)),
        session_id=session_id or None,
        create_invite=bool(data.get("createInvite", False)),
    ))


def _secret(data: Any, field: str) -> str | None:
    if isinstance(data, str):
        return data
    if isinstance(data, dict) and isinstance(data.get(field), str):
        return data[field]
    return None


def _admin_login(data: Any) -> Event:
    secret = _secret(data, "secret")
    if secret is None:
        return MalformedEvent("adminLogin expects a secret string")
    return AdminLogin(secret)


def _admin_get_server_info(data: Any) -> Event:
    token = _secret(data, "token")
    if token is None:
        return MalformedEvent("admin_getServerInfo expects a token string")
    return AdminGetServerInfo(token)


_PARSERS = {
    JOIN: _join,
    PLAYER_READY: lambda data: PlayerReady(),
    TURN_OVER: TurnOver,
    MATCH: lambda data: Match(),
    CARD_CLICK: CardClick,
    RESTART_GAME: lambda data: RestartGame(),
    ADMIN_LOGIN: _admin_login,
    ADMIN_GET_SERVER_INFO: _admin_get_server_info,
}


def parse_frame(raw: str) -> Envelope:
    """Разобрать кадр. Никогда не бросает, ошибки становятся MalformedEvent."""
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return Envelope(MalformedEvent(f"invalid JSON: {e}"))
    if not isinstance(frame, dict):
        return Envelope(MalformedEvent("frame must be an object"))
    ack = frame.get("ack")
    if not isinstance(ack, (int, str)) or isinstance(ack, bool):
        ack = None
    name = frame.get("type")
    if not isinstance(name, str):
        return Envelope(MalformedEvent("missing event type"), ack)
    parser = _PARSERS.get(name)
    if parser is None:
        return Envelope(UnknownEvent(name), ack)
    return Envelope(parser(frame.get("data")), ack)
