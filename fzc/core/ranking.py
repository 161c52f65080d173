"""
Ranking — Fuzzy subsequence ranking with usage re-weighting

Pure and deterministic: the same query, catalog and usage counts always
produce the same order.

Matching:
- A query matches when every character appears, in order, in the entry's
  searchable text (name + description), case-insensitively.
- Non-matching entries are excluded, never just scored low.

Scoring (higher is better):
- Contiguous runs: sum of squared run lengths
- Runs starting on a word boundary, extra for a prefix match
- Whole query matching inside the name alone
- Shorter text wins among equal matches
- Usage: usage_weight * log(1 + count), when enabled

Uses rapidfuzz's LCSseq for the subsequence test and the alignment, the
same library the similarity scoring elsewhere relies on.
"""

import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from rapidfuzz.distance import LCSseq

from .model import Catalog, CommandEntry


DEFAULT_USAGE_WEIGHT = 8000

# Score weights. Only their relative order matters.
RUN_BONUS = 1000         # Per squared character of a contiguous run
BOUNDARY_BONUS = 1500    # Per run that starts a word
PREFIX_BONUS = 3000      # Match starts at the very beginning
NAME_BONUS = 5000        # Whole query is a subsequence of the name alone
LENGTH_PENALTY = 10      # Per character of searchable text

FILTER_PREFIX = "!"


@dataclass(frozen=True)
class ParsedQuery:
    """Search text split into an optional provider filter and the query."""
    filter_token: Optional[str]
    text: str

    @property
    def is_filtered(self) -> bool:
        return self.filter_token is not None


@dataclass(frozen=True)
class RankedEntry:
    """A catalog entry with its score for the current query."""
    entry: CommandEntry
    score: float
    position: int  # Index in the catalog


def parse_query(search_text: str) -> ParsedQuery:
    """
    Split '!token rest' into a filter token and the remaining query.

    '!' with no token means no filter and an empty query.
    """
    stripped = search_text.lstrip()
    if not stripped.startswith(FILTER_PREFIX):
        return ParsedQuery(None, search_text.strip())

    after = stripped[len(FILTER_PREFIX):]
    parts = after.split(None, 1)
    if not parts:
        return ParsedQuery(None, "")
    token = parts[0].lower()
    rest = parts[1].strip() if len(parts) > 1 else ""
    return ParsedQuery(token, rest)


def _is_word_start(text: str, pos: int) -> bool:
    if pos == 0:
        return True
    previous = text[pos - 1]
    return not previous.isalnum()


def _blocks_score(text: str, blocks: Sequence[Tuple[int, int]]) -> float:
    """Score an alignment given as (start, length) runs in text."""
    score = 0.0
    for start, length in blocks:
        score += RUN_BONUS * length * length
        if _is_word_start(text, start):
            score += BOUNDARY_BONUS
    if blocks and blocks[0][0] == 0:
        score += PREFIX_BONUS
    return score


def _alignment_blocks(query: str, text: str) -> List[Tuple[int, int]]:
    blocks = []
    for op in LCSseq.opcodes(query, text):
        if op.tag == "equal":
            blocks.append((op.dest_start, op.dest_end - op.dest_start))
    return blocks


def is_subsequence(query: str, text: str) -> bool:
    """True when every character of query occurs in text, in order."""
    if not query:
        return True
    return LCSseq.similarity(query, text) == len(query)


def score_text(query: str, text: str, name: Optional[str] = None) -> Optional[float]:
    """
    Base match score of query against text, None when it does not match.

    Args:
        query: Query text (any case)
        text: Searchable text (any case)
        name: Optional leading part of text that earns NAME_BONUS when it
            alone contains the query
    """
    needle = query.lower()
    haystack = text.lower()
    if not needle:
        return 0.0
    if not is_subsequence(needle, haystack):
        return None

    best = _blocks_score(haystack, _alignment_blocks(needle, haystack))

    # A contiguous occurrence can beat the LCS alignment, e.g. at a word start
    start = haystack.find(needle)
    while start != -1:
        best = max(best, _blocks_score(haystack, [(start, len(needle))]))
        start = haystack.find(needle, start + 1)

    if name is not None and is_subsequence(needle, name.lower()):
        best += NAME_BONUS

    return best - LENGTH_PENALTY * len(haystack)


def usage_boost(count: int, usage_weight: float) -> float:
    """Saturating usage bonus: grows with count, never negative."""
    if count <= 0 or usage_weight <= 0:
        return 0.0
    return usage_weight * math.log1p(count)


def rank(
    query: str,
    catalog: Catalog,
    usage: Optional[Mapping[str, int]] = None,
    provider_filter: Optional[str] = None,
    usage_enabled: bool = True,
    usage_weight: float = DEFAULT_USAGE_WEIGHT,
) -> List[RankedEntry]:
    """
    Rank catalog entries against a query.

    Args:
        query: Search text; a leading '!token ' selects a provider unless
            provider_filter is given explicitly
        catalog: Entries to rank
        usage: Invocation counts keyed by CommandEntry.usage_key
        provider_filter: Provider alias (or name, for providers without alias)
        usage_enabled: Add usage boost to scores
        usage_weight: Multiplier of the usage boost

    Returns:
        Ranked entries, best first. Empty query returns every candidate
        (browse mode) in usage-then-declaration order.
    """
    parsed = parse_query(query)
    token = provider_filter if provider_filter is not None else parsed.filter_token
    text = parsed.text if provider_filter is None else query.strip()
    usage = usage or {}

    allowed = None
    if token is not None:
        allowed = catalog.resolve_filter(token)
        if not allowed:
            return []

    ranked = []
    for position, entry in enumerate(catalog.entries):
        if allowed is not None and entry.provenance not in allowed:
            continue

        base = score_text(text, entry.search_text, name=entry.name)
        if base is None:
            continue

        score = base
        if usage_enabled:
            score += usage_boost(usage.get(entry.usage_key, 0), usage_weight)
        ranked.append(RankedEntry(entry=entry, score=score, position=position))

    if not text:
        ranked.sort(key=lambda item: (-item.score, item.position))
    else:
        ranked.sort(key=lambda item: (
            -item.score,
            catalog.provider_rank(item.entry.provenance),
            item.entry.name.casefold(),
            item.position,
        ))
    return ranked
