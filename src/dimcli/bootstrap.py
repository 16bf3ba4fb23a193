"""
Startup gate for dim-cli.

Opens the data store exactly once before any argument is parsed. A
successful run produces a ReadinessToken, which the dispatcher requires;
a failure is terminal for the process and no command may run.
"""

import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from dimcli.config import Settings
from dimcli.db.connection import DataStore, open_store
from dimcli.exceptions import BootstrapError

logger = logging.getLogger(__name__)

StoreInitializer = Callable[[], Awaitable[DataStore]]


class BootstrapState(str, enum.Enum):
    """Lifecycle of the startup gate."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ReadinessToken:
    """Proof that the startup gate completed; carries the opened store."""

    store: DataStore
    started_at: datetime
    completed_at: datetime
    duration_ms: float


class StartupGate:
    """
    One-shot asynchronous initialization barrier.

    Example:
        >>> gate = StartupGate(lambda: open_store("sqlite+aiosqlite://"))
        >>> token = await gate.open()
        >>> await dispatcher.dispatch(argv, token)
    """

    def __init__(self, initializer: StoreInitializer) -> None:
        self._initializer = initializer
        self._state = BootstrapState.UNINITIALIZED
        self._token: Optional[ReadinessToken] = None
        self._error: Optional[BootstrapError] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "StartupGate":
        async def initializer() -> DataStore:
            return await open_store(settings.database_url, echo=settings.database_echo)

        return cls(initializer)

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def error(self) -> Optional[BootstrapError]:
        return self._error

    async def open(self) -> ReadinessToken:
        """
        Run the initializer and return the readiness token.

        The initializer runs at most once: later calls return the same token,
        or raise the original failure again.

        Raises:
            BootstrapError: If initialization fails, or is already in progress
        """
        if self._state is BootstrapState.READY:
            assert self._token is not None
            return self._token
        if self._state is BootstrapState.FAILED:
            assert self._error is not None
            raise self._error
        if self._state is BootstrapState.INITIALIZING:
            raise BootstrapError("Startup gate is already initializing")

        self._state = BootstrapState.INITIALIZING
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        logger.debug("Startup gate: initializing data store")

        try:
            store = await self._initializer()
        except BootstrapError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = BootstrapError(f"Data store initialization failed: {e}")
            self._fail(error)
            raise error from e

        duration_ms = (time.perf_counter() - start) * 1000
        self._token = ReadinessToken(
            store=store,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration_ms=duration_ms,
        )
        self._state = BootstrapState.READY
        logger.debug("Startup gate: ready (%.1fms)", duration_ms)
        return self._token

    def _fail(self, error: BootstrapError) -> None:
        self._error = error
        self._state = BootstrapState.FAILED
        logger.error("Startup gate failed: %s", error.message)
