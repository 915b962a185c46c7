"""Имена событий протокола и прочие константы."""
from typing import TypedDict


class PlayerPayload(TypedDict):
    connectionId: str
    username: str
    score: int
    ready: bool


# Входящие события
JOIN = "join"
PLAYER_READY = "playerReady"
TURN_OVER = "turnOver"
MATCH = "match"
CARD_CLICK = "cardClick"
RESTART_GAME = "restartGame"
ADMIN_LOGIN = "adminLogin"
ADMIN_GET_SERVER_INFO = "admin_getServerInfo"

# Исходящие события
START_GAME = "startGame"
PLAYER_TURN = "playerTurn"
ADD_SCORE = "addScore"
FLIP_CARD = "flipCard"
GAME_OVER = "gameOver"
MAIN_SCENE = "mainScene"
ADMIN_UPDATE_DATA = "admin_updateData"

# Служебные кадры
AUTH = "auth"
ACK = "ack"
CONNECTED = "connected"

DRAW = "draw"
MAX_PLAYERS = 2

# Коды закрытия WebSocket
CLOSE_SUPERSEDED = 4000
CLOSE_EXPECTED_AUTH = 4001
CLOSE_INVALID_IDENTITY = 4003
