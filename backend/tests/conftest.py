"""
Pytest fixtures: контекст сервера с фейковыми сокетами.
"""
import random
from types import SimpleNamespace

import pytest

from memorymatch.context import ServerContext
from memorymatch.ws_manager import Connection

ADMIN_SECRET = "s3cret"


class FakeWebSocket:
    """Записывает всё, что сервер отправил в сокет."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed_with: int | None = None

    async def send_json(self, payload):
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.closed_with = code

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, event: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == event]


@pytest.fixture
def config():
    return SimpleNamespace(
        host="127.0.0.1",
        port=0,
        admin_secret=ADMIN_SECRET,
        debug=False,
        allowed_origins=["*"],
        deck_pairs=6,
        game_over_delay=0.0,
        invite_fallback=True,
    )


@pytest.fixture
def ctx(config):
    context = ServerContext.create(config, rng=random.Random(7))
    yield context
    context.close()


@pytest.fixture
def connect(ctx):
    async def _connect(connection_id: str, admin_candidate: bool = False) -> Connection:
        conn = Connection(FakeWebSocket(), connection_id, admin_candidate)
        await ctx.manager.connect(conn)
        return conn
    return _connect
