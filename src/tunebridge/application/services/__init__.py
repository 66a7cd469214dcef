"""Application services for link resolution."""

from tunebridge.application.services.cross_referencer import CrossReferencer
from tunebridge.application.services.link_classifier import (
    DEFAULT_GRAMMARS,
    LinkClassifier,
    LinkGrammar,
)
from tunebridge.application.services.provider_gateway import ProviderGateway
from tunebridge.application.services.resolution_service import ResolutionService
from tunebridge.application.services.result_aggregator import ResultAggregator
from tunebridge.application.services.streaming_emitter import StreamingEmitter

__all__ = [
    "DEFAULT_GRAMMARS",
    "CrossReferencer",
    "LinkClassifier",
    "LinkGrammar",
    "ProviderGateway",
    "ResolutionService",
    "ResultAggregator",
    "StreamingEmitter",
]
