"""
Compendium Pipeline - Relationship Linker

Creates the association between a compendium and a law. The association id
is always ``<compendiumId>-<lawId>``, so re-issuing a link after a transient
failure cannot create a second association: uniqueness is enforced by the
store on that id. Transient failures are retried with exponential backoff.
"""

from __future__ import annotations

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from compendium.core.errors import LinkError, ValidationError
from compendium.models import Association
from compendium.services.base import RecordStore
from compendium.validators import require_valid_law_id

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
DEFAULT_MAX_ATTEMPTS = 3


def _should_retry(exception: BaseException) -> bool:
    if not isinstance(exception, LinkError):
        return False
    status = exception.context.get("status")
    # No status means the request never got an answer (timeout, reset).
    return status is None or status in TRANSIENT_STATUS_CODES


class RelationshipLinker:
    def __init__(
        self,
        store: RecordStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait_multiplier: float = 0.1,
        wait_max: float = 5.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self.max_attempts = max_attempts
        self._wait_multiplier = wait_multiplier
        self._wait_max = wait_max

    async def link(self, compendium_id: str, law_id: str) -> Association:
        """
        Associate ``law_id`` with ``compendium_id``.

        Raises:
            ValidationError: empty compendium id or malformed law id
            LinkError: the store rejected the link, or retries were exhausted
        """
        if not isinstance(compendium_id, str) or not compendium_id.strip():
            raise ValidationError("compendiumId is required", law_id=law_id)
        require_valid_law_id(law_id)

        association = Association.for_pair(compendium_id.strip(), law_id)
        retryer = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self._wait_multiplier, max=self._wait_max),
            retry=retry_if_exception(_should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        async for attempt in retryer:
            with attempt:
                created = await self._store.create_compendium_law(association)

        logger.info(
            "Linked law %s to compendium %s",
            law_id,
            association.compendium_id,
            extra={"law_id": law_id, "compendium_id": association.compendium_id},
        )
        return created
