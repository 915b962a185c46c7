"""
Менеджер WebSocket: подключения по connectionId, группы сессий,
рассылка одному, участникам сессии и администраторам.
"""
import logging
from typing import Any

from fastapi import WebSocket

from .auth import AdminObservers
from .constants import CLOSE_SUPERSEDED

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, ws: WebSocket, connection_id: str, admin_candidate: bool = False):
        self.ws = ws
        self.connection_id = connection_id
        self.admin_candidate = admin_candidate
        self.session_id: str | None = None


class WSManager:
    def __init__(self, observers: AdminObservers):
        self._by_id: dict[str, Connection] = {}
        self._groups: dict[str, set[str]] = {}
        self._observers = observers

    def connection_ids(self) -> list[str]:
        return list(self._by_id)

    async def connect(self, conn: Connection) -> Connection | None:
        """
        Зарегистрировать соединение. Если id уже занят, старый сокет
        закрывается с кодом 4000 и возвращается вызывающему для очистки.
        """
        old = self._by_id.get(conn.connection_id)
        self._by_id[conn.connection_id] = conn
        if old is None:
            return None
        try:
            await old.ws.close(code=CLOSE_SUPERSEDED)
        except Exception as e:
            logger.debug("WS: close superseded %s: %s", old.connection_id, e)
        return old

    def disconnect(self, conn: Connection) -> bool:
        """False если соединение уже было вытеснено новым с тем же id."""
        if self._by_id.get(conn.connection_id) is not conn:
            return False
        del self._by_id[conn.connection_id]
        return True

    def join_group(self, conn: Connection, session_id: str) -> None:
        if conn.session_id and conn.session_id != session_id:
            self.leave_group(conn)
        self._groups.setdefault(session_id, set()).add(conn.connection_id)
        conn.session_id = session_id

    def leave_group(self, conn: Connection) -> None:
        members = self._groups.get(conn.session_id or "")
        if members is not None:
            members.discard(conn.connection_id)
            if not members:
                del self._groups[conn.session_id]
        conn.session_id = None

    def clear_group(self, session_id: str) -> None:
        for cid in self._groups.pop(session_id, set()):
            conn = self._by_id.get(cid)
            if conn and conn.session_id == session_id:
                conn.session_id = None

    def members(self, session_id: str) -> set[str]:
        return set(self._groups.get(session_id, ()))

    async def send_to_connection(self, connection_id: str, payload: dict[str, Any]) -> bool:
        conn = self._by_id.get(connection_id)
        if not conn:
            return False
        try:
            await conn.ws.send_json(payload)
            return True
        except Exception as e:
            logger.warning("WS: send_to_connection %s: %s", connection_id, e)
            return False

    async def send_to_session(
        self,
        session_id: str,
        payload: dict[str, Any],
        exclude: str | None = None,
    ) -> None:
        for cid in self.members(session_id):
            if cid != exclude:
                await self.send_to_connection(cid, payload)

    async def send_to_admins(self, payload: dict[str, Any]) -> None:
        for cid in self._observers.ids():
            await self.send_to_connection(cid, payload)
