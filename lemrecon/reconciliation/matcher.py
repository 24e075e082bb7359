"""Tolerant pairing of claimed line items against observed line items.

The predicate is permissive on purpose: names on field logs are often
abbreviated ("J. SMITH") or reordered ("SMITH, JOHN"). There is no scoring;
the first observed candidate satisfying the predicate wins, so iteration
order is the tie-break.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from lemrecon.models import LineItem

# Trimmed from the end of a leading token so "SMITH," still matches "J. SMITH"
_TOKEN_PUNCTUATION = ".,;:"
# Shorter first tokens (initials) are skipped by the token check
MIN_TOKEN_LENGTH = 2


def normalize(text: str | None) -> str:
    return (text or "").upper().strip()


def first_token(text: str) -> str:
    parts = text.split()
    return parts[0].rstrip(_TOKEN_PUNCTUATION) if parts else ""


def names_match(claimed: str, observed: str) -> bool:
    """Equality, containment either way, or first-token containment either way.

    Both arguments are expected normalized. Empty names never match.
    """
    if not claimed or not observed:
        return False
    if claimed == observed:
        return True
    if claimed in observed or observed in claimed:
        return True
    claimed_token, observed_token = first_token(claimed), first_token(observed)
    return bool(
        (len(claimed_token) >= MIN_TOKEN_LENGTH and claimed_token in observed)
        or (len(observed_token) >= MIN_TOKEN_LENGTH and observed_token in claimed)
    )


def find_match(item: LineItem, candidates: Sequence[LineItem]) -> LineItem | None:
    for candidate in candidates:
        if names_match(item.key, candidate.key):
            return candidate
    return None


@dataclass
class Pairing:
    claimed: LineItem
    observed: LineItem | None = None

    @property
    def matched(self) -> bool:
        return self.observed is not None


@dataclass
class PairingResult:
    pairs: list[Pairing] = field(default_factory=list)
    # Observed items no claim paired with
    unclaimed: list[LineItem] = field(default_factory=list)


def pair_entries(claimed: Sequence[LineItem], observed: Sequence[LineItem]) -> PairingResult:
    """Pair every claimed item with at most one observed item.

    An observed item may satisfy more than one claim; it is consumed (kept out
    of ``unclaimed``) as soon as any claim pairs with it, and every observed
    item sharing its key is consumed with it.
    """
    result = PairingResult()
    consumed: set[str] = set()
    for item in claimed:
        match = find_match(item, observed)
        if match is not None:
            consumed.add(match.key)
        result.pairs.append(Pairing(claimed=item, observed=match))

    result.unclaimed = [o for o in observed if o.key not in consumed]
    return result
