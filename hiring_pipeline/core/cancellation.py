"""
Cancellation tokens scoped to the current round selection
"""
from typing import Callable, List

import structlog

from hiring_pipeline.core.exceptions import CancelledOperation

logger = structlog.get_logger()


class CancellationToken:
    """One-shot cancellation flag with callbacks"""

    def __init__(self, scope: str = ""):
        self.scope = scope
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback fired on cancel. Returns an unregister function.
        Fires immediately if the token is already cancelled.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancelledOperation(details={"scope": self.scope})


class CancellationScope:
    """Hands out tokens; renewing the scope cancels the previous token"""

    def __init__(self, name: str = ""):
        self.name = name
        self._token = CancellationToken(name)

    @property
    def token(self) -> CancellationToken:
        return self._token

    def renew(self, name: str = None) -> CancellationToken:
        self._token.cancel()
        if name is not None:
            self.name = name
        self._token = CancellationToken(self.name)
        return self._token

    def cancel(self) -> None:
        if not self._token.cancelled:
            logger.debug("cancellation_scope_cancelled", scope=self.name)
        self._token.cancel()
