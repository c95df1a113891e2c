"""
scoring/ranking.py

Canonical ladder order: ascending final_total, then ascending round_total,
then team name. Display layers may reverse it.
"""

from decimal import Decimal
from typing import Iterable, List, Tuple

from rcj_scoring.models.ladder import LadderEntry


def ladder_sort_key(entry: LadderEntry) -> Tuple[Decimal, Decimal, str]:
    return (entry.final_total, entry.round_total, entry.team.name)


def rank_ladder(entries: Iterable[LadderEntry]) -> List[LadderEntry]:
    """Stable sort; entries with identical keys keep their input order."""
    return sorted(entries, key=ladder_sort_key)
