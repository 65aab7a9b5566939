from __future__ import annotations

import os

# The app module builds its SessionManager at import time from these.
os.environ["GEMINI_API_KEY"] = ""
os.environ.setdefault("BOT_THINK_MIN_MS", "0")
os.environ.setdefault("BOT_THINK_MAX_MS", "0")
os.environ.setdefault("NEXT_ROUND_DELAY_MS", "60000")
os.environ.setdefault("LOG_LEVEL", "WARNING")
