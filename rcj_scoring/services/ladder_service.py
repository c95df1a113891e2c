"""
Ladder Ranking Service - RCJ Scoring Engine
rcj_scoring/services/ladder_service.py

Builds the dance ladder for one division, or for every division of the
dance league, from the full history of score sheets.

Teams, division configuration, sheet headers and section values are read
as one concurrent fan-out. Aggregation and ranking then run entirely in
memory, so a caller never observes a partially computed ladder.
"""

from collections import defaultdict
from typing import Dict, List, Optional

import structlog

from rcj_scoring.config import Settings
from rcj_scoring.models.division import Division
from rcj_scoring.models.enumerations import League
from rcj_scoring.models.ladder import DivisionLadder, LadderEntry, RoundAverage
from rcj_scoring.models.team import Team
from rcj_scoring.repositories.division_repository import DivisionRepository
from rcj_scoring.repositories.score_sheet_repository import ScoreSheetRepository
from rcj_scoring.repositories.team_repository import TeamRepository
from rcj_scoring.scoring.aggregation import AggregationEngine
from rcj_scoring.scoring.ranking import rank_ladder
from rcj_scoring.services.fetch_coordinator import FetchCoordinator

logger = structlog.get_logger(__name__)


class LadderService:
    """Ranks teams per division by composite score."""

    def __init__(
        self,
        divisions: DivisionRepository,
        teams: TeamRepository,
        score_sheets: ScoreSheetRepository,
        settings: Settings,
        coordinator: Optional[FetchCoordinator] = None,
        aggregation: Optional[AggregationEngine] = None,
    ):
        self.divisions = divisions
        self.teams = teams
        self.score_sheets = score_sheets
        self.settings = settings
        self.coordinator = coordinator or FetchCoordinator()
        self.aggregation = aggregation or AggregationEngine(settings.STRICT_SECTION_COUNT)

    def build_entry(
        self, team: Team, rounds: List[RoundAverage], competition_rounds: int
    ) -> LadderEntry:
        totals = self.aggregation.team_totals(rounds, competition_rounds)
        return LadderEntry(
            team=team,
            rounds=rounds,
            interview_score=totals.interview_score,
            best_round=totals.best_round,
            best_final=totals.best_final,
            round_total=totals.round_total,
            final_total=totals.final_total,
        )

    async def fetch_dance_ladders(self, division_id: Optional[str] = None) -> List[DivisionLadder]:
        """
        One ranked ladder per division.

        Args:
            division_id: a single division (any league); when omitted every
                DANCE_LEAGUE division is ranked, ordered by division name

        Raises:
            EntityNotFoundException: division_id does not exist
        """
        if division_id:
            division_fetch = self.divisions.load_division(division_id)
            teams_fetch = self.teams.load_teams(division_id=division_id)
        else:
            league = League(self.settings.DANCE_LEAGUE)
            division_fetch = self.divisions.load_divisions(league)
            teams_fetch = self.teams.load_teams(league=league)

        loaded, teams, sheets, section_rows = await self.coordinator.gather(
            division_fetch,
            teams_fetch,
            self.score_sheets.ladder_sheets(division_id),
            self.score_sheets.section_values(division_id),
        )
        divisions: List[Division] = [loaded] if division_id else loaded

        division_ids = {d.id for d in divisions}
        sheets = [s for s in sheets if s["division_id"] in division_ids]
        averages = self.aggregation.round_averages(sheets, section_rows)

        teams_by_division: Dict[str, List[Team]] = defaultdict(list)
        for team in teams:
            teams_by_division[team.division_id].append(team)

        ladders = []
        for division in divisions:
            entries = [
                self.build_entry(team, averages.get(team.id, []), division.competition_rounds)
                for team in teams_by_division.get(division.id, [])
            ]
            ladders.append(DivisionLadder(division=division, ladder=rank_ladder(entries)))

        logger.info(
            "ladder_computed",
            division_id=division_id,
            divisions=len(ladders),
            teams=sum(len(ladder.ladder) for ladder in ladders),
            sheets=len(sheets),
        )
        return ladders

    async def fetch_dance_ladder(self, division_id: Optional[str] = None) -> List[LadderEntry]:
        """Flat ladder: one division's entries, or every dance division's in name order."""
        ladders = await self.fetch_dance_ladders(division_id)
        return [entry for ladder in ladders for entry in ladder.ladder]
