"""
Compendium Pipeline - Existence Resolver

Answers "does this law id already exist?" for an identifier that is being
typed or edited. Successive requests inside the quiescence window collapse
into a single lookup for the last identifier; earlier timers are cancelled.

Each request() bumps a generation counter. A lookup applies its result only
if its generation is still the latest, so a slow response for an older id can
never overwrite the state produced for a newer one. In-flight lookups are not
cancelled, their results are simply dropped.

Lookup failures are logged and reported as "does not exist".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from compendium.core.errors import LookupFailedError
from compendium.models import LookupResult
from compendium.services.base import RecordStore
from compendium.validators import is_valid_law_id

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0

ResultCallback = Callable[[LookupResult], Any]


class ExistenceResolver:
    """
    Debounced existence lookups against the Record Store.

    Usage:
        resolver = ExistenceResolver(store, on_result=form.prefill)
        resolver.request("1.00001")
        resolver.request("1.00002")   # cancels the first timer
        await resolver.wait_idle()
        resolver.state                # LookupResult for "1.00002"
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_result: Optional[ResultCallback] = None,
    ):
        self._store = store
        self.debounce_seconds = debounce_seconds
        self._on_result = on_result
        self._generation = 0
        self._timer: Optional[asyncio.Task[None]] = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._state: Optional[LookupResult] = None

    @property
    def state(self) -> Optional[LookupResult]:
        """Result of the most recently requested identifier, once it has resolved."""
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    async def resolve(self, law_id: str) -> LookupResult:
        """
        Look ``law_id`` up immediately, without debouncing.

        The caller must have validated the identifier already.
        """
        try:
            record = await self._store.get_law(law_id)
        except LookupFailedError as exc:
            logger.warning(
                "Existence lookup for %s failed, treating as not found: %s",
                law_id,
                exc.message,
                extra={"law_id": law_id, "error_code": exc.error_code.code},
            )
            return LookupResult.missing(law_id)

        if record is None:
            return LookupResult.missing(law_id)
        return LookupResult.found(record)

    def request(self, law_id: str) -> None:
        """
        Schedule a debounced lookup for ``law_id``.

        Must be called with a running event loop. An invalid identifier never
        reaches the store: the state becomes "does not exist" immediately.
        """
        self._generation += 1
        generation = self._generation
        self._cancel_timer()

        if not is_valid_law_id(law_id):
            logger.debug("Skipping lookup for invalid id %r", law_id)
            self._apply(generation, LookupResult.missing(str(law_id)))
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.create_task(self._fire(law_id, generation))

    def cancel(self) -> None:
        """Drop the pending timer and ignore any lookup still in flight."""
        self._generation += 1
        self._cancel_timer()

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no lookup is in flight."""
        while True:
            pending = [task for task in (self._timer, *self._inflight) if task and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire(self, law_id: str, generation: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # The lookup runs in its own task so that cancelling a later timer
        # never cancels a network call that has already started.
        task = asyncio.get_running_loop().create_task(self._lookup(law_id, generation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _lookup(self, law_id: str, generation: int) -> None:
        result = await self.resolve(law_id)
        self._apply(generation, result)

    def _apply(self, generation: int, result: LookupResult) -> bool:
        if generation != self._generation:
            logger.debug(
                "Discarding stale lookup for %s",
                result.law_id,
                extra={"generation": generation},
            )
            return False

        self._state = result
        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                logger.exception("Existence result callback failed for %s", result.law_id)
        return True
