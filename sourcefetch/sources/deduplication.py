"""Source deduplication logic for multi-provider search."""

import logging

from .models import CanonicalSource

logger = logging.getLogger(__name__)


def title_key(title: str) -> str:
    """Normalize title for comparison.

    Lowercases, drops every character that is neither alphanumeric nor
    whitespace, and collapses runs of whitespace. A title made only of
    punctuation would reduce to "" and collide with every other such title,
    so it keys on its lowercased text instead.
    """
    lowered = title.lower()
    stripped = "".join(ch for ch in lowered if ch.isalnum() or ch.isspace())
    key = " ".join(stripped.split())
    return key or " ".join(lowered.split())


class Deduplicator:
    """
    Per-query duplicate filter over DOI and normalized title.

    Two exact-match key sets grow monotonically for the lifetime of one
    query. Once a DOI or title key has been accepted, no later source sharing
    either key is accepted, regardless of provider or arrival order.

    Usage:
        dedupe = Deduplicator()
        unique = [s for s in sources if dedupe.accept(s)]
    """

    def __init__(self):
        self.seen_dois: set[str] = set()
        self.seen_title_keys: set[str] = set()
        self.rejected = 0

    def accept(self, source: CanonicalSource) -> bool:
        """Return True if the source is new, recording its keys."""
        doi = source.doi.lower() if source.doi else None
        if doi and doi in self.seen_dois:
            self.rejected += 1
            return False

        key = title_key(source.title)
        if key in self.seen_title_keys:
            self.rejected += 1
            return False

        if doi:
            self.seen_dois.add(doi)
        self.seen_title_keys.add(key)
        return True

    def filter(self, sources: list[CanonicalSource]) -> list[CanonicalSource]:
        """Accept sources in order, returning only the new ones."""
        accepted = [source for source in sources if self.accept(source)]
        if len(accepted) < len(sources):
            logger.debug(f"Dropped {len(sources) - len(accepted)} duplicate sources")
        return accepted

