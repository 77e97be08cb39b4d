"""Translation REST API endpoints.

Provider failures never surface as HTTP errors: the response carries the
original text with ``success=false``.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from codelingo.dependencies import AdapterDep, CacheDep
from codelingo.exceptions import InvalidRequest, problem_responses
from codelingo.locales import source_locale, to_locale
from codelingo.schemas import (
    TranslateBatchRequest,
    TranslateBatchResponse,
    TranslateRequest,
    TranslationHistoryItem,
    TranslationHistoryResponse,
    TranslationResult,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/translate", tags=["translate"])


@router.post(
    "",
    response_model=TranslationResult,
    responses=problem_responses(InvalidRequest),
)
async def translate(
    adapter: AdapterDep, request: TranslateRequest
) -> TranslationResult:
    """Translate a single text into ``targetLocale``."""
    outcome = await adapter.translate_one(
        request.text,
        source_locale(request.source_locale),
        to_locale(request.target_locale),
    )
    return TranslationResult(
        original_text=outcome.original_text,
        translated_text=outcome.translated_text,
        success=outcome.success,
        error=outcome.error,
    )


@router.post(
    "/batch",
    response_model=TranslateBatchResponse,
    responses=problem_responses(InvalidRequest),
)
async def translate_batch(
    adapter: AdapterDep, request: TranslateBatchRequest
) -> TranslateBatchResponse:
    """Translate several texts; results are aligned with ``texts``."""
    outcomes = await adapter.translate_many(
        request.texts,
        source_locale(request.source_locale),
        to_locale(request.target_locale),
    )
    log.debug(
        "Batch translation: %d/%d successful",
        sum(o.success for o in outcomes),
        len(outcomes),
    )
    return TranslateBatchResponse(
        translations=[
            TranslationResult(
                original_text=o.original_text,
                translated_text=o.translated_text,
                success=o.success,
                error=o.error,
            )
            for o in outcomes
        ]
    )


@router.get(
    "/history",
    response_model=TranslationHistoryResponse,
    responses=problem_responses(InvalidRequest),
)
async def get_translation_history(
    cache: CacheDep,
    room_id: Annotated[str | None, Query(alias="roomId")] = None,
    client_id: Annotated[str | None, Query(alias="clientId")] = None,
) -> TranslationHistoryResponse:
    """List cached translations made for one client in one room, oldest first."""
    if not room_id or not client_id:
        raise InvalidRequest.exception(
            "Missing required query parameters: roomId, clientId"
        )
    entries = await cache.history(room_id, client_id)
    return TranslationHistoryResponse(
        items=[TranslationHistoryItem.from_entry(e) for e in entries]
    )
