import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks long-lived resources (HTTP sessions, model clients, the DB engine,
    background tasks) and closes them together at shutdown.

    Created in the application lifespan and passed to whatever opens a resource;
    there is no module-level instance.
    """

    def __init__(self):
        self._hooks: Dict[str, Callable[[], object]] = {}
        self._closed = False

    def register(self, name: str, close_hook: Callable[[], object]) -> None:
        """Register a close-hook. Re-registering a name replaces the previous hook."""
        if self._closed:
            raise RuntimeError("ConnectionManager is already closed")
        self._hooks.pop(name, None)
        self._hooks[name] = close_hook

    def unregister(self, name: str) -> bool:
        """Forget a hook without calling it. Returns True if it was registered."""
        return self._hooks.pop(name, None) is not None

    @property
    def names(self) -> List[str]:
        return list(self._hooks)

    def close_all(self) -> List[str]:
        """
        Run every hook in reverse registration order.

        A failing hook is logged and the remaining hooks still run.

        Returns:
            names of the hooks that raised
        """
        failed = []
        for name in reversed(list(self._hooks)):
            try:
                logger.info(f"Closing {name}")
                self._hooks[name]()
            except Exception as e:
                logger.error(f"Failed to close {name}: {e}")
                failed.append(name)
        self._hooks.clear()
        self._closed = True
        return failed
