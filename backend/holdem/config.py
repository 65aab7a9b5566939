from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        if key.strip():
            # Exported variables win over file values.
            os.environ.setdefault(key.strip(), _strip_quotes(value.strip()))


def load_environment() -> None:
    backend_root = Path(__file__).resolve().parents[1]
    _load_env_file(backend_root.parent / ".env")
    _load_env_file(backend_root / ".env")


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class Settings:
    small_blind: int = 10
    big_blind: int = 20
    starting_chips: int = 2000
    bot_count: int = 5
    bot_think_min_ms: int = 1000
    bot_think_max_ms: int = 2000
    next_round_delay_ms: int = 5000
    bot_chat_probability: float = 0.2

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            small_blind=_env_int("SMALL_BLIND", cls.small_blind),
            big_blind=_env_int("BIG_BLIND", cls.big_blind),
            starting_chips=_env_int("STARTING_CHIPS", cls.starting_chips),
            bot_count=_env_int("BOT_COUNT", cls.bot_count),
            bot_think_min_ms=_env_int("BOT_THINK_MIN_MS", cls.bot_think_min_ms),
            bot_think_max_ms=_env_int("BOT_THINK_MAX_MS", cls.bot_think_max_ms),
            next_round_delay_ms=_env_int("NEXT_ROUND_DELAY_MS", cls.next_round_delay_ms),
            bot_chat_probability=float(os.getenv("BOT_CHAT_PROBABILITY", str(cls.bot_chat_probability))),
        )
