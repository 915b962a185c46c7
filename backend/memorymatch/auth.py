"""
Проверка рукопожатия и доступ администраторов.

Админ-статус требует двух независимых проверок: верный adminSecret в
рукопожатии и затем успешный adminLogin с тем же секретом.
"""
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Any

from .errors import InvalidIdentity, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    connection_id: str
    admin_candidate: bool = False


def secret_matches(supplied: Any, expected: str) -> bool:
    """Точное совпадение. Пустой настроенный секрет не совпадает ни с чем."""
    if not expected or not isinstance(supplied, str):
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def validate_handshake(data: dict, config) -> Identity:
    """
    Извлекает connectionId из кадра auth.
    Бросает InvalidIdentity если id отсутствует или пуст.
    """
    connection_id = data.get("connectionId")
    if not isinstance(connection_id, str) or not connection_id.strip():
        raise InvalidIdentity()
    candidate = secret_matches(data.get("adminSecret"), config.admin_secret)
    return Identity(connection_id=connection_id, admin_candidate=candidate)


class AdminObservers:
    """connectionId -> выданный токен наблюдателя."""

    def __init__(self, admin_secret: str):
        self._admin_secret = admin_secret
        self._tokens: dict[str, str] = {}

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._tokens

    def ids(self) -> list[str]:
        return list(self._tokens)

    def login(self, connection_id: str, secret: str, candidate: bool) -> str:
        """Выдать новый токен или бросить Unauthorized."""
        if not candidate or not secret_matches(secret, self._admin_secret):
            logger.warning("ADMIN: login refused for %s", connection_id)
            raise Unauthorized("wrong admin password")
        token = secrets.token_urlsafe(32)
        self._tokens[connection_id] = token
        logger.info("ADMIN: %s logged in", connection_id)
        return token

    def check(self, connection_id: str, token: Any) -> None:
        issued = self._tokens.get(connection_id)
        if issued is None or not isinstance(token, str) or not hmac.compare_digest(
            issued.encode(), token.encode()
        ):
            raise Unauthorized("invalid admin token")

    def revoke(self, connection_id: str) -> bool:
        return self._tokens.pop(connection_id, None) is not None
