"""Tournaments module: competitions, team registration and standings.

Standings are points tables (win 3, draw 1, loss 0) kept up to date from
``matches.match.finished``. Only results of matches that name a known
tournament count.

Subscribes:
    matches.match.finished

Published topics:
    tournaments.tournament.created  -> TournamentCreatedPayload
    tournaments.team.registered     -> TeamRegisteredPayload
    tournaments.standings.updated   -> StandingsUpdatedPayload
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_MATCHES, MODULE_TEAMS, MODULE_TOURNAMENTS
from arena_server.domains.contracts import (
    MatchesTopics,
    MatchFinishedPayload,
    StandingsUpdatedPayload,
    TeamRegisteredPayload,
    TournamentCreatedPayload,
    TournamentsTopics,
)
from arena_server.event_bus import Event
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id

POINTS_WIN = 3
POINTS_DRAW = 1


class TournamentInput(BaseModel):
    name: str
    sport: str
    organizer_id: str


class TournamentResponse(TournamentInput):
    tournament_id: str
    teams: list[str] = Field(default_factory=list)
    standings: dict[str, int] = Field(default_factory=dict)
    matches_played: list[str] = Field(default_factory=list)


class TeamRegistrationInput(BaseModel):
    team_id: str


class TournamentService:
    """In-memory tournament store with points standings."""

    def __init__(self, module: Module):
        self._module = module
        self._tournaments: dict[str, TournamentResponse] = {}

    def create_tournament(self, tournament: TournamentInput) -> TournamentResponse:
        created = TournamentResponse(tournament_id=generate_short_id(prefix="trn"), **tournament.model_dump())
        self._tournaments[created.tournament_id] = created
        self._module.publish(
            TournamentsTopics.TOURNAMENT_CREATED,
            created.tournament_id,
            "Tournament",
            TournamentCreatedPayload(**tournament.model_dump(), tournament_id=created.tournament_id),
        )
        return created

    def get_tournament(self, tournament_id: str) -> TournamentResponse:
        tournament = self._tournaments.get(tournament_id)
        if tournament is None:
            raise ResourceNotFoundError("Tournament", tournament_id)
        return tournament

    def list_tournaments(self) -> list[TournamentResponse]:
        return list(self._tournaments.values())

    def register_team(self, tournament_id: str, team_id: str) -> TournamentResponse:
        tournament = self.get_tournament(tournament_id)
        if team_id in tournament.teams:
            return tournament

        tournament.teams.append(team_id)
        tournament.standings.setdefault(team_id, 0)
        self._module.publish(
            TournamentsTopics.TEAM_REGISTERED,
            tournament_id,
            "Tournament",
            TeamRegisteredPayload(tournament_id=tournament_id, team_id=team_id),
        )
        return tournament

    def record_result(self, result: MatchFinishedPayload, caused_by: Event | None = None) -> TournamentResponse | None:
        """Apply a finished match to its tournament's standings.

        Returns:
            The updated tournament, or None if the match does not belong to a
            known tournament or was already counted
        """
        if result.tournament_id is None or result.tournament_id not in self._tournaments:
            return None

        tournament = self._tournaments[result.tournament_id]
        if result.match_id in tournament.matches_played:
            return None

        standings = tournament.standings
        for side in (result.home, result.away):
            standings.setdefault(side, 0)
        if result.winner is None:
            standings[result.home] += POINTS_DRAW
            standings[result.away] += POINTS_DRAW
        else:
            standings[result.winner] += POINTS_WIN
        tournament.matches_played.append(result.match_id)

        self._module.publish(
            TournamentsTopics.STANDINGS_UPDATED,
            tournament.tournament_id,
            "Tournament",
            StandingsUpdatedPayload(
                tournament_id=tournament.tournament_id,
                match_id=result.match_id,
                standings=dict(standings),
            ),
            caused_by=caused_by,
        )
        return tournament


class TournamentsModule(Module):
    name = MODULE_TOURNAMENTS
    version = "1.0.0"
    description = "Tournaments and standings"
    depends_on = (MODULE_MATCHES, MODULE_TEAMS)
    publishes = {
        TournamentsTopics.TOURNAMENT_CREATED: TournamentCreatedPayload,
        TournamentsTopics.TEAM_REGISTERED: TeamRegisteredPayload,
        TournamentsTopics.STANDINGS_UPDATED: StandingsUpdatedPayload,
    }

    def __init__(self, context):
        super().__init__(context)
        self.tournaments = TournamentService(self)

    def _register_handlers(self) -> None:
        self.subscribe(MatchesTopics.MATCH_FINISHED, self.on_match_finished)

    async def on_match_finished(self, event: Event) -> None:
        result = self.context.contracts.decode_as(event, MatchFinishedPayload)
        tournament = self.tournaments.record_result(result, caused_by=event)
        if tournament is not None:
            self.log.info(f"Standings of {tournament.tournament_id} updated after match {result.match_id}")

    async def _initialize(self) -> None:
        self.services.register_singleton(TournamentService, self.tournaments)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("", response_model=TournamentResponse, status_code=status.HTTP_201_CREATED)
        async def create_tournament(
            body: TournamentInput,
            tournaments: TournamentService = Depends(service(TournamentService)),
        ) -> TournamentResponse:
            return tournaments.create_tournament(body)

        @router.get("", response_model=list[TournamentResponse])
        async def list_tournaments(
            tournaments: TournamentService = Depends(service(TournamentService)),
        ) -> list[TournamentResponse]:
            return tournaments.list_tournaments()

        @router.get("/{tournament_id}", response_model=TournamentResponse)
        async def get_tournament(
            tournament_id: str,
            tournaments: TournamentService = Depends(service(TournamentService)),
        ) -> TournamentResponse:
            return tournaments.get_tournament(tournament_id)

        @router.get("/{tournament_id}/standings", response_model=dict[str, int])
        async def get_standings(
            tournament_id: str,
            tournaments: TournamentService = Depends(service(TournamentService)),
        ) -> dict[str, int]:
            standings = tournaments.get_tournament(tournament_id).standings
            return dict(sorted(standings.items(), key=lambda item: item[1], reverse=True))

        @router.post("/{tournament_id}/teams", response_model=TournamentResponse)
        async def register_team(
            tournament_id: str,
            body: TeamRegistrationInput,
            tournaments: TournamentService = Depends(service(TournamentService)),
        ) -> TournamentResponse:
            return tournaments.register_team(tournament_id, body.team_id)

        return router
