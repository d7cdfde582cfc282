"""An asyncio cell that is initialized at most once."""
import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OnceCell(Generic[T]):
    """Holds a value produced by the first successful call to a factory.

    Concurrent callers of ``get_or_init`` share one in-flight attempt and
    all receive its result or its exception. A failed or cancelled attempt
    leaves the cell empty, so the next call starts over.
    """

    def __init__(self):
        self._value: Optional[T] = None
        self._initialized = False
        self._pending: Optional[asyncio.Future] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get(self) -> Optional[T]:
        """Returns the cached value, or None if the cell is empty."""
        return self._value

    async def get_or_init(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Returns the cached value, running ``factory`` if there is none yet."""
        if self._initialized:
            return self._value

        if self._pending is None:
            self._pending = asyncio.ensure_future(factory())
            self._pending.add_done_callback(self._on_done)

        # shield: a caller giving up must not cancel the attempt others await
        return await asyncio.shield(self._pending)

    def _on_done(self, future: asyncio.Future) -> None:
        if future is not self._pending:
            return
        self._pending = None
        if future.cancelled():
            logger.debug("Initialization was cancelled; cell left empty.")
            return
        error = future.exception()
        if error is not None:
            logger.debug(f"Initialization failed; cell left empty: {error!r}")
            return
        self._value = future.result()
        self._initialized = True
