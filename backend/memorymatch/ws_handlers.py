"""
Обработка сообщений WebSocket: рукопожатие, join, ход партии, админ-канал.
Каждое входящее событие обрабатывается одним обработчиком; состояние
меняется до первой отправки, поэтому блокировки не нужны.
"""
import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from .auth import validate_handshake
from .constants import (
    ACK,
    ADD_SCORE,
    ADMIN_UPDATE_DATA,
    AUTH,
    CLOSE_EXPECTED_AUTH,
    CLOSE_INVALID_IDENTITY,
    CONNECTED,
    FLIP_CARD,
    GAME_OVER,
    MAIN_SCENE,
    PLAYER_TURN,
    START_GAME,
)
from .context import ServerContext
from .errors import GameError, InvalidIdentity
from .events import (
    AdminGetServerInfo,
    AdminLogin,
    CardClick,
    Event,
    Join,
    MalformedEvent,
    Match,
    PlayerReady,
    RestartGame,
    TurnOver,
    UnknownEvent,
    parse_frame,
)
from .game import Session
from .ws_manager import Connection

logger = logging.getLogger(__name__)

NOT_IN_SESSION = {"success": False, "message": "not in a session"}


def frame(event: str, data: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": event}
    if data is not None:
        payload["data"] = data
    return payload


def server_info(ctx: ServerContext) -> dict[str, Any]:
    return {
        "games": ctx.registry.snapshot(),
        "connections": ctx.manager.connection_ids(),
    }


async def push_admin_update(ctx: ServerContext) -> None:
    """Полный снимок состояния всем наблюдателям (не diff)."""
    if not ctx.observers.ids():
        return
    await ctx.manager.send_to_admins(frame(ADMIN_UPDATE_DATA, server_info(ctx)))


async def _send_direct(conn: Connection, payload: dict[str, Any]) -> None:
    try:
        await conn.ws.send_json(payload)
    except Exception as e:
        logger.warning("WS: reply to %s failed: %s", conn.connection_id, e)


def _session_of(ctx: ServerContext, conn: Connection) -> Session | None:
    session = ctx.registry.get(conn.session_id)
    if session is None or not session.has_player(conn.connection_id):
        return None
    return session


def _discard_session(ctx: ServerContext, session_id: str) -> None:
    ctx.registry.delete(session_id)
    ctx.manager.clear_group(session_id)


def _detach(ctx: ServerContext, conn: Connection) -> None:
    """Убрать соединение из его сессии; пустая сессия удаляется сразу."""
    session = ctx.registry.get(conn.session_id)
    ctx.manager.leave_group(conn)
    if session is None:
        return
    session.remove_player(conn.connection_id)
    logger.info("MATCH: %s left session %s", conn.connection_id, session.id)
    if not session.players:
        _discard_session(ctx, session.id)


def _release(ctx: ServerContext, conn: Connection) -> None:
    ctx.observers.revoke(conn.connection_id)
    _detach(ctx, conn)


async def _game_over_later(ctx: ServerContext, session: Session, winner: str) -> None:
    # пауза, чтобы клиент доиграл анимацию последней пары
    await asyncio.sleep(ctx.config.game_over_delay)
    if ctx.registry.get(session.id) is not session:
        return
    logger.info("MATCH: session %s over, winner=%s", session.id, winner)
    await ctx.manager.send_to_session(session.id, frame(GAME_OVER, winner))
    if not session.is_invite:
        _discard_session(ctx, session.id)
    await push_admin_update(ctx)


async def handle_join(ctx: ServerContext, conn: Connection, event: Join) -> dict:
    session = ctx.matchmaker.resolve_session(conn.connection_id, event.request)
    if conn.session_id and conn.session_id != session.id:
        _detach(ctx, conn)
    ctx.manager.join_group(conn, session.id)
    await push_admin_update(ctx)
    return {"sessionId": session.id, "cardIndexes": list(session.card_indexes)}


async def handle_player_ready(ctx: ServerContext, conn: Connection) -> dict:
    session = _session_of(ctx, conn)
    if session is None:
        return NOT_IN_SESSION
    if session.mark_ready(conn.connection_id):
        first_player = session.start(ctx.rng)
        logger.info("MATCH: session %s started, first=%s", session.id, first_player)
        await ctx.manager.send_to_session(
            session.id,
            frame(START_GAME, {
                "players": session.players_payload(),
                "firstPlayer": first_player,
            }),
        )
    await push_admin_update(ctx)
    return {"players": conn.connection_id}


async def handle_match(ctx: ServerContext, conn: Connection) -> None:
    session = _session_of(ctx, conn)
    if session is None or session.pairs_remaining <= 0:
        return
    finished = session.record_match(conn.connection_id)
    winner = session.winner() if finished else None
    if finished:
        session.schedule_game_over(_game_over_later(ctx, session, winner))
    await ctx.manager.send_to_session(session.id, frame(ADD_SCORE), exclude=conn.connection_id)
    await push_admin_update(ctx)


async def handle_relay(ctx: ServerContext, conn: Connection, event: str, data: Any) -> None:
    """Чистая пересылка второму игроку, без проверки хода."""
    session = _session_of(ctx, conn)
    if session is None:
        return
    await ctx.manager.send_to_session(session.id, frame(event, data), exclude=conn.connection_id)


async def handle_admin_login(ctx: ServerContext, conn: Connection, event: AdminLogin) -> dict:
    token = ctx.observers.login(conn.connection_id, event.secret, conn.admin_candidate)
    await push_admin_update(ctx)
    return {"success": True, "token": token, **server_info(ctx)}


async def handle_admin_get_server_info(
    ctx: ServerContext, conn: Connection, event: AdminGetServerInfo
) -> dict:
    ctx.observers.check(conn.connection_id, event.token)
    return {"success": True, **server_info(ctx)}


async def handle_event(ctx: ServerContext, conn: Connection, event: Event) -> dict | None:
    """
    Единая точка диспетчеризации. Возвращает payload ответа (ack) или None.
    Ошибки игровой логики превращаются в {"success": False, "message": ...}.
    """
    try:
        if isinstance(event, Join):
            return await handle_join(ctx, conn, event)
        if isinstance(event, PlayerReady):
            return await handle_player_ready(ctx, conn)
        if isinstance(event, TurnOver):
            await handle_relay(ctx, conn, PLAYER_TURN, event.data)
            return None
        if isinstance(event, CardClick):
            await handle_relay(ctx, conn, FLIP_CARD, event.data)
            return None
        if isinstance(event, Match):
            await handle_match(ctx, conn)
            return None
        if isinstance(event, RestartGame):
            await _send_direct(conn, frame(MAIN_SCENE))
            return None
        if isinstance(event, AdminLogin):
            return await handle_admin_login(ctx, conn, event)
        if isinstance(event, AdminGetServerInfo):
            return await handle_admin_get_server_info(ctx, conn, event)
        if isinstance(event, MalformedEvent):
            logger.warning("WS: malformed event from %s: %s", conn.connection_id, event.reason)
            return {"success": False, "message": event.reason}
        if isinstance(event, UnknownEvent):
            logger.debug("WS: ignoring unknown event %r from %s", event.name, conn.connection_id)
            return None
    except GameError as e:
        logger.info("WS: %s from %s: %s", type(e).__name__, conn.connection_id, e.message)
        return e.payload()
    raise TypeError(f"unhandled event {event!r}")


async def handle_ws_message(ctx: ServerContext, conn: Connection, raw: str) -> None:
    """Обрабатывает одно сообщение от уже авторизованного клиента."""
    envelope = parse_frame(raw)
    logger.debug("WS: msg from %s event=%s", conn.connection_id, envelope.event)
    reply = await handle_event(ctx, conn, envelope.event)
    if envelope.ack is not None and reply is not None:
        await _send_direct(conn, {"type": ACK, "ack": envelope.ack, "data": reply})


async def handle_disconnect(ctx: ServerContext, conn: Connection) -> None:
    if not ctx.manager.disconnect(conn):
        # уже вытеснено новым соединением и очищено
        return
    _release(ctx, conn)
    await push_admin_update(ctx)


async def ws_auth_and_loop(ws: WebSocket, ctx: ServerContext) -> None:
    """
    Первое сообщение: auth с connectionId. Дальше цикл приёма сообщений.
    """
    conn = None
    try:
        await ws.accept()
        logger.info("WS: accepted, waiting for auth")
        raw = await ws.receive_text()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type != AUTH:
            logger.warning("WS: expected auth, got %s, closing %d", msg_type, CLOSE_EXPECTED_AUTH)
            await ws.close(code=CLOSE_EXPECTED_AUTH)
            return
        try:
            identity = validate_handshake(data, ctx.config)
        except InvalidIdentity as e:
            logger.warning("WS: auth failed (%s)", e.message)
            await ws.close(code=CLOSE_INVALID_IDENTITY, reason=e.message)
            return
        conn = Connection(ws, identity.connection_id, identity.admin_candidate)
        old = await ctx.manager.connect(conn)
        if old is not None:
            logger.info("WS: %s superseded an older connection", conn.connection_id)
            _release(ctx, old)
        logger.info(
            "WS: player connected: %s admin_candidate=%s",
            conn.connection_id, conn.admin_candidate,
        )
        await _send_direct(conn, {"type": CONNECTED, "connectionId": conn.connection_id})
        await push_admin_update(ctx)
        while True:
            msg = await ws.receive_text()
            await handle_ws_message(ctx, conn, msg)
    except WebSocketDisconnect as e:
        logger.info(
            "WS: client disconnected code=%s reason=%s connection_id=%s",
            e.code, e.reason or "", conn.connection_id if conn else None,
        )
    except Exception as e:
        logger.exception("WS: error connection_id=%s: %s", conn.connection_id if conn else None, e)
    finally:
        if conn is not None:
            await handle_disconnect(ctx, conn)
            logger.info("WS: disconnected connection_id=%s", conn.connection_id)
