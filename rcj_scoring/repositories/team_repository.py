"""
Team Repository - RCJ Scoring Engine
rcj_scoring/repositories/team_repository.py

Data access layer for teams, their institutions and members.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

from rcj_scoring.core.exceptions import EntityNotFoundException, ValidationFailureException
from rcj_scoring.models.enumerations import Gender, League
from rcj_scoring.models.team import Institution, Member, Team
from rcj_scoring.repositories.base import BaseRepository
from rcj_scoring.services.fetch_coordinator import Fetch
from rcj_scoring.stores.base import StoreSession

logger = structlog.get_logger(__name__)


class TeamRepository(BaseRepository):
    """Repository for Team reads, creation and updates."""

    @staticmethod
    def build_member(row: Mapping[str, Any]) -> Member:
        return Member(id=row["id"], name=row["name"], gender=Gender(row["gender"]))

    @staticmethod
    def build_team(row: Mapping[str, Any], members: Sequence[Member] = ()) -> Team:
        return Team(
            id=row["id"],
            name=row["name"],
            institution=Institution(id=row["institution_id"], name=row["institution_name"]),
            division_id=row["division_id"],
            import_id=row.get("import_id"),
            members=list(members),
        )

    def load_teams(
        self,
        division_id: Optional[str] = None,
        league: Optional[League] = None,
    ) -> Fetch:
        """Fetch for teams (without members) of a division or league."""
        league_value = league.value if league else None

        def query(session: StoreSession) -> List[Team]:
            rows = session.select_teams(division_id=division_id, league=league_value)
            return [self.build_team(r) for r in rows]

        return self.read(query, name="teams")

    async def fetch_team(self, team_id: str) -> Team:
        """
        Fetch a team and its members.

        Both queries run concurrently and write into the same Team, so each
        result is applied under the coordinator's exclusive lock.

        Raises:
            EntityNotFoundException: no team with this id
        """
        team = Team(id=team_id)

        def apply_header(row: Optional[Dict[str, Any]]) -> None:
            if row is None:
                return
            team.name = row["name"]
            team.institution = Institution(id=row["institution_id"], name=row["institution_name"])
            team.division_id = row["division_id"]
            team.import_id = row.get("import_id")

        def apply_members(rows: List[Dict[str, Any]]) -> None:
            team.members = [self.build_member(r) for r in rows]

        header, _ = await self.coordinator.gather(
            self.read(lambda s: s.select_team(team_id), name="team", apply=apply_header),
            self.read(
                lambda s: s.select_team_members(team_id=team_id),
                name="team_members",
                apply=apply_members,
            ),
        )
        if header is None:
            raise EntityNotFoundException("Team", team_id)
        return team

    async def fetch_teams(
        self,
        division_id: Optional[str] = None,
        import_ids: Optional[Sequence[str]] = None,
        populate_members: bool = True,
    ) -> List[Team]:
        """
        Fetch teams, optionally by division or import ids.

        Args:
            division_id: Optional filter by division
            import_ids: Optional filter by external import ids
            populate_members: Also read members (concurrently with the teams)
        """
        fetches = [
            self.read(
                lambda s: s.select_teams(division_id=division_id, import_ids=import_ids),
                name="teams",
            )
        ]
        if populate_members:
            fetches.append(
                self.read(
                    lambda s: s.select_team_members(division_id=division_id),
                    name="team_members",
                )
            )
        results = await self.coordinator.gather(*fetches)

        members: Dict[str, List[Member]] = defaultdict(list)
        if populate_members:
            for row in results[1]:
                members[row["team_id"]].append(self.build_member(row))
        return [self.build_team(row, members.get(row["id"], [])) for row in results[0]]

    @staticmethod
    def _validate(team: Team) -> None:
        if not team.name:
            raise ValidationFailureException("A team name is required", field="name")
        if not team.division_id:
            raise ValidationFailureException("A division is required", field="division_id")
        if team.institution is None:
            raise ValidationFailureException("An institution is required", field="institution")

    def _resolve_references(self, session: StoreSession, team: Team) -> str:
        """Check the division and return the institution id, inserting a new one by name."""
        self.require(session.select_division(team.division_id), "Division", team.division_id)
        institution_id = team.institution.id
        if not institution_id:
            return session.insert_institution(team.institution.name)
        self.require(session.select_institutions([institution_id]), "Institution", institution_id)
        return institution_id

    async def create_team(self, mutator: Callable[[Team], None]) -> Team:
        """
        Insert a team with its members.

        A team whose institution has no id gets a new institution row in the
        same transaction.
        """

        def work(session: StoreSession) -> str:
            team = Team()
            mutator(team)
            self._validate(team)
            institution_id = self._resolve_references(session, team)

            team_id = session.insert_team(
                {
                    "name": team.name,
                    "institution_id": institution_id,
                    "division_id": team.division_id,
                    "import_id": team.import_id,
                }
            )
            session.insert_team_members(
                team_id, [{"name": m.name, "gender": m.gender.value} for m in team.members]
            )
            return team_id

        team_id = await self.transact(work, "create_team")
        logger.info("team_created", team_id=team_id)
        return await self.fetch_team(team_id)

    async def update_team(self, team_id: str, mutator: Callable[[Team], None]) -> Team:
        """
        Re-read a team inside a transaction, let `mutator` edit it, write it back.

        Members keep their row when they keep their id. Members without an id
        are inserted, and members the mutator dropped are deleted. The whole
        closure, mutator included, is re-run on a serialization conflict.

        Raises:
            EntityNotFoundException: no team with this id (mutator not called)
            ValidationFailureException: a member id that is not on this team
        """
        changes: Dict[str, int] = {}

        def work(session: StoreSession) -> None:
            row = session.select_team(team_id)
            if row is None:
                raise EntityNotFoundException("Team", team_id)
            original = [self.build_member(m) for m in session.select_team_members(team_id=team_id)]
            team = self.build_team(row, original)

            mutator(team)
            self._validate(team)
            institution_id = self._resolve_references(session, team)
            session.update_team(
                team_id,
                {
                    "name": team.name,
                    "institution_id": institution_id,
                    "division_id": team.division_id,
                },
            )

            original_ids = {m.id for m in original}
            kept = set()
            added = []
            for member in team.members:
                if not member.id:
                    added.append({"name": member.name, "gender": member.gender.value})
                    continue
                if member.id not in original_ids:
                    raise ValidationFailureException(
                        f"Member {member.id} is not on team {team_id}", field="members"
                    )
                session.update_team_member(
                    team_id, member.id, {"name": member.name, "gender": member.gender.value}
                )
                kept.add(member.id)
            session.insert_team_members(team_id, added)

            dropped = [m.id for m in original if m.id not in kept]
            session.delete_team_members(team_id, dropped)
            changes.update(added=len(added), removed=len(dropped))

        await self.transact(work, "update_team")
        logger.info("team_updated", team_id=team_id, **changes)
        return await self.fetch_team(team_id)

    async def fetch_institutions(self) -> List[Institution]:
        """All institutions, ordered by name."""
        rows = await self.run_fetch(
            self.read(lambda s: s.select_institutions(), name="institutions")
        )
        return [Institution(id=r["id"], name=r["name"]) for r in rows]
