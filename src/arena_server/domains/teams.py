"""Teams module: team creation and membership.

Published topics:
    teams.team.created  -> TeamCreatedPayload
    teams.member.joined -> MemberJoinedPayload
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_TEAMS, MODULE_USERS
from arena_server.domains.contracts import MemberJoinedPayload, TeamCreatedPayload, TeamsTopics
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id


class TeamInput(BaseModel):
    name: str
    sport: str
    captain_id: str


class TeamResponse(TeamInput):
    team_id: str
    members: list[str] = Field(default_factory=list)


class MemberInput(BaseModel):
    user_id: str


class TeamService:
    """In-memory team store."""

    def __init__(self, module: Module):
        self._module = module
        self._teams: dict[str, TeamResponse] = {}

    def create_team(self, team: TeamInput) -> TeamResponse:
        """Create a team with its captain as first member."""
        created = TeamResponse(team_id=generate_short_id(prefix="team"), members=[team.captain_id], **team.model_dump())
        self._teams[created.team_id] = created
        self._module.publish(
            TeamsTopics.TEAM_CREATED,
            created.team_id,
            "Team",
            TeamCreatedPayload(team_id=created.team_id, name=created.name, sport=created.sport, captain_id=created.captain_id),
        )
        return created

    def get_team(self, team_id: str) -> TeamResponse:
        team = self._teams.get(team_id)
        if team is None:
            raise ResourceNotFoundError("Team", team_id)
        return team

    def list_teams(self) -> list[TeamResponse]:
        return list(self._teams.values())

    def join(self, team_id: str, user_id: str) -> TeamResponse:
        """Add a member. Joining twice is a no-op and publishes nothing."""
        team = self.get_team(team_id)
        if user_id in team.members:
            return team
        team.members.append(user_id)
        self._module.publish(
            TeamsTopics.MEMBER_JOINED,
            team_id,
            "Team",
            MemberJoinedPayload(team_id=team_id, user_id=user_id),
        )
        return team


class TeamsModule(Module):
    name = MODULE_TEAMS
    version = "1.0.0"
    description = "Teams and membership"
    depends_on = (MODULE_USERS,)
    publishes = {
        TeamsTopics.TEAM_CREATED: TeamCreatedPayload,
        TeamsTopics.MEMBER_JOINED: MemberJoinedPayload,
    }

    async def _initialize(self) -> None:
        self.teams = TeamService(self)
        self.services.register_singleton(TeamService, self.teams)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
        async def create_team(body: TeamInput, teams: TeamService = Depends(service(TeamService))) -> TeamResponse:
            return teams.create_team(body)

        @router.get("", response_model=list[TeamResponse])
        async def list_teams(teams: TeamService = Depends(service(TeamService))) -> list[TeamResponse]:
            return teams.list_teams()

        @router.get("/{team_id}", response_model=TeamResponse)
        async def get_team(team_id: str, teams: TeamService = Depends(service(TeamService))) -> TeamResponse:
            return teams.get_team(team_id)

        @router.post("/{team_id}/members", response_model=TeamResponse)
        async def join_team(
            team_id: str,
            body: MemberInput,
            teams: TeamService = Depends(service(TeamService)),
        ) -> TeamResponse:
            return teams.join(team_id, body.user_id)

        return router
