"""Per-request deduplication of resolution results.

Hey future me - a user pasting the Spotify AND the Apple link of the same song
should get ONE answer, not two. Two results are the same work when:
1. Their primary entries carry the same canonical ISRC/UPC, or
2. Neither has an identifier and artist+title match (case-insensitive, whitespace
   collapsed - exact match only, no fuzziness)

The later duplicate doesn't vanish silently: its input links get merged into the
surviving result (which may already have been emitted - it's the same object,
so whoever holds it sees the merged set).
"""

import logging

from tunebridge.domain.entities import ResolutionResult

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Deduplicates ResolutionResults by work identity within one request."""

    def __init__(self) -> None:
        self._by_work: dict[str, ResolutionResult] = {}

    def add(self, result: ResolutionResult) -> ResolutionResult | None:
        """Register a result.

        Args:
            result: Freshly resolved result for one input

        Returns:
            The result if it's a new work (emit it), None if it was merged into
            an earlier result or is empty
        """
        work_key = result.work_key()
        if work_key is None:
            return None

        survivor = self._by_work.get(work_key)
        if survivor is None:
            self._by_work[work_key] = result
            return result

        survivor.input_links |= result.input_links
        logger.debug(
            "Merged duplicate result for %s (%d input links)",
            work_key,
            len(survivor.input_links),
        )
        return None

    @property
    def results(self) -> list[ResolutionResult]:
        """All distinct results seen so far."""
        return list(self._by_work.values())
