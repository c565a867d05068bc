"""Deferred cleanup actions run once when a pipeline exits"""
from typing import Callable, List, Tuple

from merge_repos.exceptions import CleanupError
from merge_repos.logging_config import get_logger

logger = get_logger(__name__)


class CleanupStack:
    """Last-in first-out list of cleanup actions.

    Every action runs at most once, even when ``run`` is called again,
    and a failing action does not stop the remaining ones.
    """

    def __init__(self):
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def __len__(self) -> int:
        return len(self._actions)

    def register(self, description: str, action: Callable[[], None]) -> None:
        logger.debug(f"Registering cleanup: {description}")
        self._actions.append((description, action))

    def run(self) -> List[Tuple[str, Exception]]:
        """Run and forget all registered actions, newest first.

        Returns:
            (description, error) for every action that failed
        """
        failures = []
        while self._actions:
            description, action = self._actions.pop()
            logger.debug(f"Cleanup: {description}")
            try:
                action()
            except Exception as e:
                logger.error(f"Cleanup '{description}' failed: {e}")
                failures.append((description, e))
        return failures

    def __enter__(self) -> "CleanupStack":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        failures = self.run()
        if failures and exc_type is None:
            raise CleanupError(failures)
        # The original failure is the one reported when both happen
        return False
