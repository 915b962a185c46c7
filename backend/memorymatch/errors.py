"""Ошибки игровой логики. Наружу (клиенту) уходят только как payload ответа."""


class GameError(Exception):
    message = "error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def payload(self) -> dict:
        return {"success": False, "message": self.message}


class InvalidIdentity(GameError):
    message = "invalid connectionId"


class SessionNotFound(GameError):
    message = "session not found"


class SessionFull(GameError):
    message = "session is full"


class Unauthorized(GameError):
    message = "unauthorized"
