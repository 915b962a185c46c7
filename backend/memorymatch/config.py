"""Конфигурация приложения."""
import os
from functools import lru_cache


def _flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


@lru_cache
def get_config():
    return type("Config", (), {
        "host": os.environ.get("HOST", "0.0.0.0"),
        "port": int(os.environ.get("PORT", "8000")),
        "admin_secret": os.environ.get("ADMIN_SECRET", ""),
        "debug": _flag("DEBUG"),
        "allowed_origins": os.environ.get("ALLOWED_ORIGINS", "*").split(","),
        "deck_pairs": int(os.environ.get("DECK_PAIRS", "8")),
        "game_over_delay": float(os.environ.get("GAME_OVER_DELAY", "2.0")),
        "invite_fallback": _flag("INVITE_FALLBACK", "1"),
    })()
