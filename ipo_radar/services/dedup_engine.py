"""
IPO Deduplication Engine

Sources disagree on entity identity in two ways, so merging runs in two stages:

1. Exact-key merge: records sharing a slug are overlaid field by field in
   explicit source-priority order (lower number = higher priority = applied
   last = wins). Without a priority map, input order decides.
2. Fuzzy prefix merge: the same company listed under a shorter and a longer
   name ("Gaudium IVF" vs "Gaudium IVF Women Health"). Two records match only
   when the shorter slug is a hyphen-delimited prefix of the longer one AND
   the shorter company name is a space-delimited word prefix of the longer
   one ("sun-pharma" never absorbs "sunrise-pharma").

Chain policy for fuzzy merges (A prefixes B prefixes C): shorter records are
processed longest-first and each merges into the longest remaining record it
prefixes, so the whole chain collapses into C with gaps filled from the
nearest link first. When a record prefixes two longer records that do not
themselves form a chain, the match is ambiguous and nothing is merged.

The fuzzy stage is O(n^2) over the post-exact set; per-run entity counts are
in the tens.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ipo_radar.schemas.ipo import IpoRecord

logger = logging.getLogger(__name__)

# Priority for records whose source is not in the priority map
DEFAULT_SOURCE_PRIORITY = 100


@dataclass
class AmbiguousMatch:
    """A shorter record left unmerged because its longer matches diverge."""
    slug: str
    candidates: List[str] = field(default_factory=list)


@dataclass
class DedupResult:
    """Output of deduplicate()."""
    records: List[IpoRecord] = field(default_factory=list)
    exact_merges: int = 0
    fuzzy_merges: int = 0
    ambiguous: List[AmbiguousMatch] = field(default_factory=list)


def is_name_prefix(shorter: IpoRecord, longer: IpoRecord) -> bool:
    """True when `shorter` is the same company as `longer` under a truncated name."""
    if not longer.slug.startswith(shorter.slug + "-"):
        return False
    return longer.company_name.lower().startswith(shorter.company_name.lower() + " ")


def merge_exact(
    records: Sequence[IpoRecord],
    source_priority: Optional[Dict[str, int]] = None,
) -> List[IpoRecord]:
    """
    Collapse records sharing a slug.

    Within a slug group, records are applied from lowest to highest priority
    (stable within one source), each overlaying its non-absent fields on the
    accumulated record. Output keeps the order in which each slug first
    appeared. Input records are not mutated.
    """
    priorities = source_priority or {}

    def rank(record: IpoRecord) -> int:
        return priorities.get(record.source, DEFAULT_SOURCE_PRIORITY)

    groups: Dict[str, List[IpoRecord]] = {}
    for record in records:
        groups.setdefault(record.slug, []).append(record)

    merged: List[IpoRecord] = []
    for slug, group in groups.items():
        # Higher number first, so the highest-priority record is applied last
        ordered = sorted(group, key=rank, reverse=True)
        combined = ordered[0].model_copy()
        for other in ordered[1:]:
            combined.overlay(other)
        if len(group) > 1:
            logger.debug(
                f"[DEDUP] Exact merge of {len(group)} records for '{slug}' "
                f"(sources: {[r.source for r in ordered]})"
            )
        merged.append(combined)

    return merged


def _forms_chain(candidates: List[IpoRecord]) -> bool:
    """Candidates sorted shortest-first, each a name prefix of the next."""
    return all(is_name_prefix(a, b) for a, b in zip(candidates, candidates[1:]))


def merge_fuzzy(
    records: Sequence[IpoRecord],
    ambiguous: Optional[List[AmbiguousMatch]] = None,
) -> List[IpoRecord]:
    """
    Fold shorter-named duplicates into their longer-named counterparts.

    Kept records are mutated in place (gap fill only). Ambiguous shorter
    records are kept as-is and appended to `ambiguous` when given.
    """
    remaining = list(records)
    removed = set()

    for shorter in sorted(remaining, key=lambda r: len(r.slug), reverse=True):
        candidates = [
            other for other in remaining
            if id(other) not in removed
            and other is not shorter
            and is_name_prefix(shorter, other)
        ]
        if not candidates:
            continue

        candidates.sort(key=lambda r: len(r.slug))
        if not _forms_chain(candidates):
            logger.warning(
                f"[DEDUP] Ambiguous prefix match for '{shorter.slug}': "
                f"{[c.slug for c in candidates]}; keeping both"
            )
            if ambiguous is not None:
                ambiguous.append(
                    AmbiguousMatch(slug=shorter.slug, candidates=[c.slug for c in candidates])
                )
            continue

        target = candidates[-1]
        target.fill_gaps_from(shorter)
        removed.add(id(shorter))
        logger.info(f"[DEDUP] Fuzzy merge: '{shorter.company_name}' -> '{target.company_name}'")

    return [r for r in remaining if id(r) not in removed]


def deduplicate(
    records: Sequence[IpoRecord],
    source_priority: Optional[Dict[str, int]] = None,
) -> DedupResult:
    """Exact merge, then fuzzy merge. Resulting slugs are unique."""
    exact = merge_exact(records, source_priority=source_priority)
    ambiguous: List[AmbiguousMatch] = []
    fuzzy = merge_fuzzy(exact, ambiguous=ambiguous)

    result = DedupResult(
        records=fuzzy,
        exact_merges=len(records) - len(exact),
        fuzzy_merges=len(exact) - len(fuzzy),
        ambiguous=ambiguous,
    )
    logger.info(
        f"[DEDUP] {len(records)} records -> {len(result.records)} "
        f"({result.exact_merges} exact, {result.fuzzy_merges} fuzzy, "
        f"{len(result.ambiguous)} ambiguous)"
    )
    return result
