"""
Memory Match API и WebSocket.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import get_config
from .context import ServerContext
from .ws_handlers import ws_auth_and_loop

config = get_config()

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.context = ServerContext.create(config)
    logger.info("server context ready, deck_pairs=%d", config.deck_pairs)
    try:
        yield
    finally:
        app.state.context.close()


app = FastAPI(title="Memory Match API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health(request: Request):
    ctx: ServerContext = request.app.state.context
    return {
        "status": "ok",
        "games": len(ctx.registry),
        "connections": len(ctx.manager.connection_ids()),
    }


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    logger.info("WS: connection attempt from %s", ws.client)
    await ws_auth_and_loop(ws, ws.app.state.context)


# Статика фронтенда (для разработки)
frontend_path = Path(__file__).resolve().parent.parent.parent / "frontend"
if frontend_path.is_dir():
    app.mount("/", StaticFiles(directory=str(frontend_path), html=True), name="frontend")


def run() -> None:
    uvicorn.run(app, host=config.host, port=config.port)
