"""Request and response models for the lookup API.

Responses use camelCase on the wire, matching the durable record layout.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tunebridge.domain.entities import ProviderResult, ResolutionResult

# =============================================================================
# REQUESTS
# =============================================================================


class LinkLookupRequest(BaseModel):
    """Free-form text with one or more links / ISRCs / UPCs."""

    uri: str = Field(..., description="Text containing provider links or identifiers")


class IsrcLookupRequest(BaseModel):
    isrc: str = Field(..., description="ISRC, separators allowed (e.g. US-RC1-76-07839)")


class UpcLookupRequest(BaseModel):
    upc: str = Field(..., description="12-14 digit UPC/EAN barcode")


class TitleLookupRequest(BaseModel):
    title: str = Field(..., description="Track title")
    artist: str = Field(..., description="Artist name")


# =============================================================================
# RESPONSES
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderResultResponse(_CamelModel):
    """One provider's view of the work."""

    provider: str = Field(..., description="Provider wire name (spotify, appleMusic, ...)")
    artist: str
    title: str
    url: str = Field(..., description="Canonical provider URL")
    external_id: str | None = Field(None, description="ISRC (tracks) or UPC (albums)")
    art_url: str | None = Field(None, description="Artwork URL")
    market_region: str = Field(..., description="Market the data came from")
    is_album: bool | None = None
    is_primary: bool = Field(False, description="True for the provider that was asked directly")

    @classmethod
    def from_entity(cls, result: ProviderResult) -> "ProviderResultResponse":
        return cls(
            provider=result.provider.value,
            artist=result.artist,
            title=result.title,
            url=result.url,
            external_id=result.external_id or None,
            art_url=result.art_url,
            market_region=result.market_region,
            is_album=result.is_album,
            is_primary=result.is_primary,
        )


class ResolutionResultResponse(_CamelModel):
    """Every provider's view of one track/album, primary first."""

    results: list[ProviderResultResponse]
    input_links: list[str] = Field(
        default_factory=list, description="Raw inputs that resolved to this work"
    )

    @classmethod
    def from_entity(cls, resolution: ResolutionResult) -> "ResolutionResultResponse":
        ordered = sorted(
            resolution.results.values(), key=lambda result: not result.is_primary
        )
        return cls(
            results=[ProviderResultResponse.from_entity(result) for result in ordered],
            input_links=sorted(resolution.input_links),
        )
