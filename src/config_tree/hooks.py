from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Literal

logger = logging.getLogger("config_tree.hooks")
logger.addHandler(logging.NullHandler())

Hook = Callable[[Dict[str, Any]], None]


class HookBus:
    """Fans binding-change events (bind, rebind, unbind, rename) out to registered callables."""

    def __init__(self, failure_mode: Literal["ignore", "log", "raise"] = "ignore") -> None:
        self._hooks: List[Hook] = []

        if failure_mode not in ("ignore", "log", "raise"):
            raise ValueError("failure_mode must be one of 'ignore', 'log', 'raise'")
        self._failure_mode = failure_mode

    def register(self, func: Hook) -> None:
        if not callable(func):
            raise TypeError("Hook must be callable")
        self._hooks.append(func)

    def run(self, event: Dict[str, Any]) -> None:
        for hook in list(self._hooks):
            try:
                hook(dict(event))
            except Exception as exc:
                if self._failure_mode == "raise":
                    raise
                elif self._failure_mode == "log":
                    logger.error("Hook %r failed on %s: %s", hook, event.get("action"), exc)
                else:
                    logger.debug("Hook %r failed but ignored: %s", hook, exc)

    def clear(self) -> None:
        self._hooks.clear()

    def __len__(self) -> int:
        return len(self._hooks)
