from __future__ import annotations

import sys

from .config import debug_enabled

_DEBUG_LOG = debug_enabled()


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def _debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[epubtxt debug] {message}", file=sys.stderr)
