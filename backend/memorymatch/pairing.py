"""
Реестр игровых сессий и подбор сессии для входящего join (in-memory).
"""
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from .deck import make_card_indexes
from .errors import SessionFull, SessionNotFound
from .game import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinRequest:
    username: str
    is_invite: bool = False
    session_id: str | None = None
    create_invite: bool = False


class SessionRegistry:
    """Единственный источник правды об активных партиях."""

    def __init__(self, deck_factory: Callable[[], list[int]]):
        self._deck_factory = deck_factory
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self):
        return iter(list(self._sessions.values()))

    def create(self, is_invite: bool = False) -> Session:
        session = Session(card_indexes=self._deck_factory(), is_invite=is_invite)
        self._sessions[session.id] = session
        logger.info("MATCH: session %s created invite=%s", session.id, is_invite)
        return session

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.cancel_game_over()
            logger.info("MATCH: session %s deleted", session_id)
        return session

    def find_open(self) -> Session | None:
        """
        Первая не-invite сессия, ещё ни разу не заполненная. Порядок обхода не гарантирован:
        любое свободное место одинаково подходит.
        """
        for session in self._sessions.values():
            if not session.is_invite and not session.was_full:
                return session
        return None

    def snapshot(self) -> dict[str, dict]:
        return {sid: s.admin_payload() for sid, s in self._sessions.items()}

    def close(self) -> None:
        for session in self._sessions.values():
            session.cancel_game_over()
        self._sessions.clear()


class Matchmaker:
    def __init__(self, registry: SessionRegistry, invite_fallback: bool = True):
        self.registry = registry
        self.invite_fallback = invite_fallback

    def resolve_session(self, connection_id: str, request: JoinRequest) -> Session:
        """
        Найти или создать сессию для соединения и добавить его игроком.
        SessionNotFound: invite на неизвестную сессию при выключенном fallback.
        SessionFull: invite в чужую заполненную сессию.
        """
        session = None
        if request.is_invite:
            session = self.registry.get(request.session_id)
            if session is None:
                if not self.invite_fallback:
                    raise SessionNotFound()
                logger.warning(
                    "MATCH: invite session %s not found, creating a new one for %s",
                    request.session_id, connection_id,
                )
            elif session.is_full() and not session.has_player(connection_id):
                raise SessionFull()
        elif not request.create_invite:
            session = self.registry.find_open()

        if session is None:
            session = self.registry.create(is_invite=request.is_invite or request.create_invite)

        session.add_player(connection_id, request.username)
        logger.info(
            "MATCH: %s joined session %s (%d/2)",
            connection_id, session.id, len(session.players),
        )
        return session


def default_deck_factory(pairs: int, rng: random.Random | None = None) -> Callable[[], list[int]]:
    return lambda: make_card_indexes(pairs, rng)
