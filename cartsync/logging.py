"""
Logging setup for cartsync.

One stdout handler on the root logger, level from LOG_LEVEL. Modules do
`logger = get_logger(__name__)`.
"""

import logging
import os
import sys
from functools import cache

_FORMATS = {
    "local": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    # Vercel stamps each line itself
    "vercel": "%(levelname)s - %(name)s - %(message)s",
}

_QUIET = ("httpx", "httpcore", "upstash_redis")

# Characters that would let a cart id or guest id forge extra log lines
_CONTROL_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": ""})


def _setup() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    style = "vercel" if os.environ.get("VERCEL") == "1" else "local"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMATS[style]))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)


_setup()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def safe_for_log(value, max_length: int = 50) -> str:
    """Escape control characters and cut `value` to `max_length` characters."""
    if not value:
        return "N/A"
    text = str(value).translate(_CONTROL_ESCAPES)
    return text if len(text) <= max_length else text[:max_length] + "..."
