from __future__ import annotations

import os
from typing import Mapping

WORKERS_ENV = "EPUBTXT_WORKERS"
DEBUG_ENV = "EPUBTXT_DEBUG"
DEFAULT_WORKERS = 1

_TRUTHY = {"1", "true", "yes", "on"}


def _environ(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if env is None else env


def default_workers(env: Mapping[str, str] | None = None) -> int:
    raw = _environ(env).get(WORKERS_ENV, "").strip()
    if not raw:
        return DEFAULT_WORKERS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_WORKERS
    return max(1, value)


def debug_enabled(env: Mapping[str, str] | None = None) -> bool:
    return _environ(env).get(DEBUG_ENV, "").strip().lower() in _TRUTHY


def effective_workers(workers: int | None, env: Mapping[str, str] | None = None) -> int:
    if workers is None:
        return default_workers(env)
    return max(1, int(workers))
