"""
Игровая сессия на двоих: раскладка, очки, готовность, ход партии.
Отложенную рассылку gameOver выполняет задача asyncio, которой владеет сессия.
"""
import asyncio
import enum
import logging
import random
import uuid
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from .constants import DRAW, MAX_PLAYERS, PlayerPayload

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    WAITING_FOR_PLAYERS = "waiting_for_players"
    NOT_READY = "not_ready"
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass
class Player:
    connection_id: str
    username: str
    score: int = 0
    ready: bool = False

    def payload(self) -> PlayerPayload:
        return {
            "connectionId": self.connection_id,
            "username": self.username,
            "score": self.score,
            "ready": self.ready,
        }


@dataclass
class Session:
    card_indexes: list[int]
    is_invite: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    players: dict[str, Player] = field(default_factory=dict)
    pairs_remaining: int = 0
    started: bool = False
    # однажды заполненная открытая сессия больше не участвует в подборе
    was_full: bool = False
    _game_over_task: asyncio.Task | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.pairs_remaining:
            self.pairs_remaining = self.total_pairs

    @property
    def total_pairs(self) -> int:
        return len(self.card_indexes) // 2

    @property
    def state(self) -> SessionState:
        if self.pairs_remaining == 0 and (not self.is_invite or self.game_over_pending):
            # invite-сессия после gameOver снова ждёт готовности
            return SessionState.RESOLVED
        if not self.is_full():
            return SessionState.WAITING_FOR_PLAYERS
        if self.started:
            return SessionState.ACTIVE
        return SessionState.NOT_READY

    @property
    def game_over_pending(self) -> bool:
        return self._game_over_task is not None and not self._game_over_task.done()

    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    def has_player(self, connection_id: str) -> bool:
        return connection_id in self.players

    def add_player(self, connection_id: str, username: str) -> Player:
        """Добавить игрока. Повторное добавление того же соединения ничего не меняет."""
        if connection_id in self.players:
            return self.players[connection_id]
        if self.is_full():
            raise ValueError(f"session {self.id} is full")
        player = Player(
            connection_id=connection_id,
            username=username or f"player_{connection_id[:8]}",
        )
        self.players[connection_id] = player
        if self.is_full():
            self.was_full = True
        return player

    def remove_player(self, connection_id: str) -> Player | None:
        """
        Убрать игрока. Invite-сессия возвращается к ожиданию готовности,
        чтобы вернувшийся участник мог начать партию заново.
        """
        player = self.players.pop(connection_id, None)
        if player is None or not self.is_invite:
            return player
        if self.started:
            self.pairs_remaining = self.total_pairs
            for p in self.players.values():
                p.score = 0
        self.started = False
        for p in self.players.values():
            p.ready = False
        return player

    def all_ready(self) -> bool:
        return self.is_full() and all(p.ready for p in self.players.values())

    def mark_ready(self, connection_id: str) -> bool:
        """
        Отметить готовность игрока.
        True, если именно этот вызов открыл ready-гейт (пора слать startGame).
        """
        player = self.players.get(connection_id)
        if player is None or self.started or self.game_over_pending:
            return False
        if self.pairs_remaining == 0 and not self.is_invite:
            return False
        player.ready = True
        return self.all_ready()

    def start(self, rng: random.Random | None = None) -> str:
        """Начать партию, вернуть connectionId первого ходящего."""
        if self.pairs_remaining == 0:
            # реванш в invite-сессии: та же раскладка, счёт с нуля
            self.pairs_remaining = self.total_pairs
            for p in self.players.values():
                p.score = 0
        self.started = True
        return (rng or random).choice(list(self.players))

    def record_match(self, connection_id: str) -> bool:
        """
        Засчитать найденную пару. True если партия этим ходом завершилась.
        """
        player = self.players.get(connection_id)
        if player is None or self.pairs_remaining <= 0:
            return False
        player.score += 1
        self.pairs_remaining -= 1
        if self.pairs_remaining > 0:
            return False
        self.started = False
        if self.is_invite:
            for p in self.players.values():
                p.ready = False
        return True

    def winner(self) -> str:
        """connectionId игрока с большим счётом или DRAW при равенстве."""
        ranked = sorted(self.players.values(), key=lambda p: p.score, reverse=True)
        if not ranked:
            return DRAW
        if len(ranked) > 1 and ranked[0].score == ranked[1].score:
            return DRAW
        return ranked[0].connection_id

    def schedule_game_over(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        self.cancel_game_over()
        self._game_over_task = asyncio.create_task(coro, name=f"game-over-{self.id}")
        return self._game_over_task

    def cancel_game_over(self) -> None:
        task = self._game_over_task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # сессию удаляет сама задача gameOver
            return
        task.cancel()
        logger.info("MATCH: cancelled pending gameOver for session %s", self.id)

    def players_payload(self) -> dict[str, PlayerPayload]:
        return {cid: p.payload() for cid, p in self.players.items()}

    def admin_payload(self) -> dict:
        return {
            "sessionId": self.id,
            "players": self.players_payload(),
            "cardIndexes": list(self.card_indexes),
            "pairsRemaining": self.pairs_remaining,
            "isInvite": self.is_invite,
            "state": self.state.value,
        }
