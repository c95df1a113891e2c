"""
scoring/aggregation.py

Turns raw section values into per-round averages and per-team composites.

    sheet_total   = Σ(section.value × template_section.multiplier)
    round_average = mean(sheet_total) grouped by (team, round)
    interview     = Σ round_average where round == 0
    best_round    = max round_average where 1 ≤ round ≤ competition_rounds, else 0
    best_final    = max round_average where round > competition_rounds, else 0
    round_total   = interview + best_round
    final_total   = interview + best_final if best_final > 0, else 0

Everything stays in Decimal; nothing is rounded here.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import structlog

from rcj_scoring.core.exceptions import InvariantViolationException
from rcj_scoring.models.enumerations import RoundKind
from rcj_scoring.models.ladder import RoundAverage
from rcj_scoring.scoring.utils import ZERO, as_decimal, mean

logger = structlog.get_logger(__name__)


def classify_round(round_number: int, competition_rounds: int) -> RoundKind:
    if round_number == 0:
        return RoundKind.INTERVIEW
    if round_number <= competition_rounds:
        return RoundKind.COMPETITION
    return RoundKind.FINAL


def sheet_total(section_values: Iterable[Tuple[Any, Any]]) -> Decimal:
    """Σ(value × multiplier) over (value, multiplier) pairs, exact."""
    total = ZERO
    for value, multiplier in section_values:
        total += as_decimal(value) * as_decimal(multiplier)
    return total


@dataclass
class TeamTotals:
    """Composite scores for one team."""
    interview_score: Decimal = ZERO
    best_round: Decimal = ZERO
    best_final: Decimal = ZERO
    round_total: Decimal = ZERO
    final_total: Decimal = ZERO


class AggregationEngine:
    """Pure computation over section rows and sheet headers."""

    def __init__(self, strict_section_count: bool = False):
        self.strict_section_count = strict_section_count

    def sheet_totals(self, section_rows: Iterable[Mapping[str, Any]]) -> Dict[str, Decimal]:
        """
        Weighted total per score sheet.

        Args:
            section_rows: rows carrying score_sheet_id, value and multiplier

        Returns:
            score_sheet_id -> exact total
        """
        grouped: Dict[str, List[Tuple[Any, Any]]] = defaultdict(list)
        for row in section_rows:
            grouped[row["score_sheet_id"]].append((row["value"], row["multiplier"]))
        return {sheet_id: sheet_total(pairs) for sheet_id, pairs in grouped.items()}

    def round_averages(
        self,
        sheets: Iterable[Mapping[str, Any]],
        section_rows: Iterable[Mapping[str, Any]],
    ) -> Dict[str, List[RoundAverage]]:
        """
        Average sheet total per (team, round).

        Args:
            sheets: rows carrying id, team_id, round and template_section_count
            section_rows: rows carrying score_sheet_id, value and multiplier

        Returns:
            team_id -> RoundAverage list ordered by round

        Raises:
            InvariantViolationException: a sheet's section count differs from
                its template's and strict_section_count is set
        """
        rows = list(section_rows)
        totals = self.sheet_totals(rows)
        counts: Dict[str, int] = defaultdict(int)
        for row in rows:
            counts[row["score_sheet_id"]] += 1

        grouped: Dict[Tuple[str, int], List[Decimal]] = defaultdict(list)
        for sheet in sheets:
            self._check_section_count(sheet, counts.get(sheet["id"], 0))
            # a sheet without sections totals zero but is still a sample
            grouped[(sheet["team_id"], int(sheet["round"]))].append(
                totals.get(sheet["id"], ZERO)
            )

        result: Dict[str, List[RoundAverage]] = defaultdict(list)
        for (team_id, round_number), sheet_totals in sorted(grouped.items(), key=lambda kv: kv[0][1]):
            result[team_id].append(
                RoundAverage(
                    round=round_number,
                    average=mean(sheet_totals),
                    sample_count=len(sheet_totals),
                )
            )
        return dict(result)

    def team_totals(self, rounds: Iterable[RoundAverage], competition_rounds: int) -> TeamTotals:
        """Partition round averages into interview / best round / best final."""
        interview = ZERO
        best_round = ZERO
        best_final = ZERO
        for entry in rounds:
            kind = classify_round(entry.round, competition_rounds)
            if kind is RoundKind.INTERVIEW:
                interview += entry.average
            elif kind is RoundKind.COMPETITION:
                best_round = max(best_round, entry.average)
            else:
                best_final = max(best_final, entry.average)

        return TeamTotals(
            interview_score=interview,
            best_round=best_round,
            best_final=best_final,
            round_total=interview + best_round,
            final_total=interview + best_final if best_final > ZERO else ZERO,
        )

    def _check_section_count(self, sheet: Mapping[str, Any], found: int) -> None:
        expected = sheet.get("template_section_count")
        if expected is None or int(expected) == found:
            return
        if self.strict_section_count:
            raise InvariantViolationException(
                f"Score sheet {sheet['id']} has {found} sections, template defines {expected}"
            )
        # missing sections count as zero
        logger.warning(
            "section_count_mismatch",
            score_sheet_id=sheet["id"],
            found=found,
            expected=int(expected),
        )
