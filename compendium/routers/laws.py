"""
Compendium API - Laws Router

Admin endpoints for checking, upserting, linking and bulk-importing laws.
Pipeline errors are rendered by the handlers in compendium.core.errors.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from ..core.errors import ErrorResponse
from ..models import Association, BatchReport, LookupResult, UpsertOutcome
from ..services.pipeline import LawPipeline
from ..validators import require_valid_law_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["Laws"],
    responses={
        422: {"model": ErrorResponse, "description": "Local validation failed"},
        502: {"model": ErrorResponse, "description": "Record Store or blob storage failed"},
    },
)


def get_pipeline(request: Request) -> LawPipeline:
    """Return the pipeline built at application startup."""
    return request.app.state.pipeline


PipelineDep = Annotated[LawPipeline, Depends(get_pipeline)]


# =============================================================================
# Endpoints
# =============================================================================


@router.get(
    "/laws/{law_id}",
    response_model=LookupResult,
    summary="Check whether a law exists",
)
async def get_law(law_id: str, pipeline: PipelineDep) -> LookupResult:
    """
    Return the stored fields and compendium links for ``law_id``.

    A failed lookup is reported as ``exists: false`` rather than an error.
    """
    require_valid_law_id(law_id)
    return await pipeline.resolver().resolve(law_id)


@router.post(
    "/laws",
    response_model=UpsertOutcome,
    summary="Create or update a law and its full text",
)
async def upsert_law(
    pipeline: PipelineDep,
    id: Annotated[str, Form()] = "",
    title: Annotated[str, Form()] = "",
    jurisdiction: Annotated[str, Form()] = "",
    source: Annotated[str, Form()] = "",
    last_reform_date: Annotated[str, Form()] = "",
    keep_existing_text: Annotated[bool, Form()] = False,
    text: Annotated[Optional[UploadFile], File()] = None,
) -> UpsertOutcome:
    """
    Upsert metadata, then upload ``text`` to the issued session.

    Without a text file and with ``keep_existing_text`` the stored full text
    is kept; new laws always require one.
    """
    fields = {
        "id": id,
        "name": title,
        "jurisdiction": jurisdiction,
        "source": source,
        "lastReformDate": last_reform_date,
    }
    content = await text.read() if text is not None else None
    return await pipeline.upsert_law(
        fields, content or None, keep_existing_text=keep_existing_text
    )


@router.post(
    "/compendiums/{compendium_id}/laws/import",
    response_model=BatchReport,
    summary="Bulk-import laws from CSV",
    responses={400: {"model": ErrorResponse, "description": "Empty or header-only file"}},
)
async def import_laws(
    compendium_id: str,
    pipeline: PipelineDep,
    file: Annotated[UploadFile, File()],
    remote: Annotated[bool, Query(description="Use the store's server-side import")] = False,
) -> BatchReport:
    """
    Upsert every CSV row and link it to ``compendium_id``.

    Full texts are not uploaded; attach them afterwards one law at a time.
    """
    content = await file.read()
    logger.info("CSV upload %s (%d bytes) for compendium %s", file.filename, len(content), compendium_id)
    importer = pipeline.importer()
    if remote:
        return await importer.import_batch_remote(content, compendium_id)
    return await importer.import_batch(content, compendium_id)


@router.post(
    "/compendiums/{compendium_id}/laws/{law_id}",
    response_model=Association,
    status_code=status.HTTP_201_CREATED,
    summary="Link a law to a compendium",
)
async def link_law(compendium_id: str, law_id: str, pipeline: PipelineDep) -> Association:
    return await pipeline.linker().link(compendium_id, law_id)
