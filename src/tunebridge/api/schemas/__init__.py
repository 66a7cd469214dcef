"""API request/response schemas."""

from tunebridge.api.schemas.lookup import (
    IsrcLookupRequest,
    LinkLookupRequest,
    ProviderResultResponse,
    ResolutionResultResponse,
    TitleLookupRequest,
    UpcLookupRequest,
)

__all__ = [
    "IsrcLookupRequest",
    "LinkLookupRequest",
    "ProviderResultResponse",
    "ResolutionResultResponse",
    "TitleLookupRequest",
    "UpcLookupRequest",
]
