"""Matches module: scheduling, live scores and results.

The match lifecycle is scheduled -> live -> finished. Every transition is
announced on the bus; tournaments, notifications, AI summaries and analytics
all hang off these topics.

Published topics:
    matches.match.created  -> MatchCreatedPayload
    matches.score.updated  -> ScoreUpdatedPayload
    matches.match.finished -> MatchFinishedPayload
"""

from enum import StrEnum

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_MATCHES, MODULE_USERS, MODULE_VENUES
from arena_server.domains.contracts import (
    MatchCreatedPayload,
    MatchesTopics,
    MatchFinishedPayload,
    ScoreUpdatedPayload,
)
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id


class MatchStatus(StrEnum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


class MatchInput(BaseModel):
    sport: str
    home: str = Field(description="Home side (team id or player id)")
    away: str = Field(description="Away side (team id or player id)")
    venue_id: str | None = None
    tournament_id: str | None = None


class ScoreInput(BaseModel):
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)


class MatchResponse(MatchInput):
    match_id: str
    status: MatchStatus = MatchStatus.SCHEDULED
    home_score: int = 0
    away_score: int = 0


class MatchStateError(ValueError):
    """Raised when a match transition is not allowed from its current status."""


class MatchService:
    """In-memory match store."""

    def __init__(self, module: Module):
        self._module = module
        self._matches: dict[str, MatchResponse] = {}

    def create_match(self, match: MatchInput) -> MatchResponse:
        if match.home == match.away:
            raise MatchStateError("A match needs two different sides")
        created = MatchResponse(match_id=generate_short_id(prefix="mt"), **match.model_dump())
        self._matches[created.match_id] = created
        self._module.publish(
            MatchesTopics.MATCH_CREATED,
            created.match_id,
            "Match",
            MatchCreatedPayload(**created.model_dump(include=set(MatchCreatedPayload.model_fields))),
        )
        return created

    def get_match(self, match_id: str) -> MatchResponse:
        match = self._matches.get(match_id)
        if match is None:
            raise ResourceNotFoundError("Match", match_id)
        return match

    def list_matches(self, sport: str | None = None, status_filter: MatchStatus | None = None) -> list[MatchResponse]:
        matches = list(self._matches.values())
        if sport:
            matches = [m for m in matches if m.sport == sport]
        if status_filter:
            matches = [m for m in matches if m.status == status_filter]
        return matches

    def update_score(self, match_id: str, score: ScoreInput) -> MatchResponse:
        """Record a live score; the first update moves the match to live."""
        match = self.get_match(match_id)
        if match.status == MatchStatus.FINISHED:
            raise MatchStateError(f"Match {match_id} is already finished")

        match.status = MatchStatus.LIVE
        match.home_score = score.home_score
        match.away_score = score.away_score
        self._module.publish(
            MatchesTopics.SCORE_UPDATED,
            match_id,
            "Match",
            ScoreUpdatedPayload(match_id=match_id, home_score=score.home_score, away_score=score.away_score),
        )
        return match

    def finish_match(self, match_id: str) -> MatchResponse:
        match = self.get_match(match_id)
        if match.status == MatchStatus.FINISHED:
            raise MatchStateError(f"Match {match_id} is already finished")

        match.status = MatchStatus.FINISHED
        winner = None
        if match.home_score > match.away_score:
            winner = match.home
        elif match.away_score > match.home_score:
            winner = match.away

        self._module.publish(
            MatchesTopics.MATCH_FINISHED,
            match_id,
            "Match",
            MatchFinishedPayload(
                match_id=match_id,
                sport=match.sport,
                home=match.home,
                away=match.away,
                home_score=match.home_score,
                away_score=match.away_score,
                winner=winner,
                tournament_id=match.tournament_id,
            ),
        )
        return match


class MatchesModule(Module):
    name = MODULE_MATCHES
    version = "1.2.0"
    description = "Matches, live scores and results"
    depends_on = (MODULE_USERS, MODULE_VENUES)
    publishes = {
        MatchesTopics.MATCH_CREATED: MatchCreatedPayload,
        MatchesTopics.SCORE_UPDATED: ScoreUpdatedPayload,
        MatchesTopics.MATCH_FINISHED: MatchFinishedPayload,
    }

    async def _initialize(self) -> None:
        self.matches = MatchService(self)
        self.services.register_singleton(MatchService, self.matches)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
        async def create_match(body: MatchInput, matches: MatchService = Depends(service(MatchService))) -> MatchResponse:
            try:
                return matches.create_match(body)
            except MatchStateError as e:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

        @router.get("", response_model=list[MatchResponse])
        async def list_matches(
            sport: str | None = None,
            match_status: MatchStatus | None = None,
            matches: MatchService = Depends(service(MatchService)),
        ) -> list[MatchResponse]:
            return matches.list_matches(sport, match_status)

        @router.get("/{match_id}", response_model=MatchResponse)
        async def get_match(match_id: str, matches: MatchService = Depends(service(MatchService))) -> MatchResponse:
            return matches.get_match(match_id)

        @router.put("/{match_id}/score", response_model=MatchResponse)
        async def update_score(
            match_id: str,
            body: ScoreInput,
            matches: MatchService = Depends(service(MatchService)),
        ) -> MatchResponse:
            try:
                return matches.update_score(match_id, body)
            except MatchStateError as e:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

        @router.post("/{match_id}/finish", response_model=MatchResponse)
        async def finish_match(match_id: str, matches: MatchService = Depends(service(MatchService))) -> MatchResponse:
            try:
                return matches.finish_match(match_id)
            except MatchStateError as e:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

        return router
