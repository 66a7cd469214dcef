"""Music lookup API endpoints.

Hey future me - the interesting one is POST /url. It streams NDJSON: one line per
distinct work, written the moment that work finishes resolving (a cached Spotify
link shows up instantly, a cold Apple link comes later). Clients read it line by
line. /url-list is the same batch collected into one JSON array for clients that
can't stream.

The single lookups (/isrc, /upc, /title) never touch the cache and answer 404 when
nothing matches.
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from tunebridge.api.dependencies import get_resolution_service
from tunebridge.api.schemas import (
    IsrcLookupRequest,
    LinkLookupRequest,
    ResolutionResultResponse,
    TitleLookupRequest,
    UpcLookupRequest,
)
from tunebridge.application.services import ResolutionService
from tunebridge.domain.entities import IdentifierKind, ResolutionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/music/lookup", tags=["Lookup"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def _ndjson_lines(results: AsyncIterator[ResolutionResult]) -> AsyncIterator[str]:
    async for result in results:
        yield ResolutionResultResponse.from_entity(result).model_dump_json(by_alias=True) + "\n"


def _single_or_404(result: ResolutionResult | None, what: str) -> ResolutionResultResponse:
    if not result:
        raise HTTPException(status_code=404, detail=f"No match for {what}")
    return ResolutionResultResponse.from_entity(result)


@router.post("/url")
async def lookup_links_stream(
    body: LinkLookupRequest,
    service: ResolutionService = Depends(get_resolution_service),
) -> StreamingResponse:
    """Resolve every link/identifier in the text, streaming NDJSON results.

    Empty text is rejected with 422 before the stream starts.
    """
    results = service.resolve_batch(body.uri)
    return StreamingResponse(_ndjson_lines(results), media_type=NDJSON_MEDIA_TYPE)


@router.post("/url-list", response_model=list[ResolutionResultResponse])
async def lookup_links(
    body: LinkLookupRequest,
    service: ResolutionService = Depends(get_resolution_service),
) -> list[ResolutionResultResponse]:
    """Resolve every link/identifier in the text and return all results at once."""
    return [
        ResolutionResultResponse.from_entity(result)
        async for result in service.resolve_batch(body.uri)
    ]


@router.post("/isrc", response_model=ResolutionResultResponse)
async def lookup_isrc(
    body: IsrcLookupRequest,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResultResponse:
    """Resolve a track by ISRC."""
    result = await service.resolve_by_identifier(IdentifierKind.ISRC, body.isrc)
    return _single_or_404(result, f"ISRC {body.isrc}")


@router.post("/upc", response_model=ResolutionResultResponse)
async def lookup_upc(
    body: UpcLookupRequest,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResultResponse:
    """Resolve an album by UPC."""
    result = await service.resolve_by_identifier(IdentifierKind.UPC, body.upc)
    return _single_or_404(result, f"UPC {body.upc}")


@router.post("/title", response_model=ResolutionResultResponse)
async def lookup_title(
    body: TitleLookupRequest,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResultResponse:
    """Resolve a track by title and artist."""
    result = await service.resolve_by_title_artist(body.title, body.artist)
    return _single_or_404(result, f"'{body.artist} - {body.title}'")
