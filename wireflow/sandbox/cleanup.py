# wireflow/sandbox/cleanup.py
"""
Cleanup stack for processes owned by one invocation.

Callbacks run in reverse registration order. A failing callback is logged
and the remaining ones still run.
"""
import inspect
from typing import Any, Awaitable, Callable, List, Tuple, Union

from wireflow.core.logging import log


CleanupFn = Callable[[], Union[None, Awaitable[Any]]]


class CleanupStack:

    def __init__(self):
        self._callbacks: List[Tuple[str, CleanupFn]] = []

    def push(self, callback: CleanupFn, label: str = "") -> None:
        self._callbacks.append((label or getattr(callback, "__name__", "cleanup"), callback))

    def __len__(self) -> int:
        return len(self._callbacks)

    async def run(self) -> List[str]:
        """Run every callback once; returns labels of the ones that failed."""
        failures: List[str] = []
        while self._callbacks:
            label, callback = self._callbacks.pop()
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
                log("CLEANUP", f"✓ {label}")
            except Exception as e:
                log("TEARDOWN", f"⚠️ Cleanup task failed ({label}): {e}")
                failures.append(label)
        return failures

    async def __aenter__(self) -> "CleanupStack":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.run()
