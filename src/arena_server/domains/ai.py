"""AI module: match summaries.

Summaries are produced from finished match results with a plain template;
the generator is a service so a model-backed implementation can replace it.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_AI, MODULE_MATCHES
from arena_server.domains.contracts import AiTopics, MatchesTopics, MatchFinishedPayload, SummaryGeneratedPayload
from arena_server.event_bus import Event
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module


class SummaryResponse(BaseModel):
    match_id: str
    summary: str


def summarize(result: MatchFinishedPayload) -> str:
    score = f"{result.home_score}-{result.away_score}"
    if result.winner is None:
        return f"{result.home} and {result.away} drew {score} in {result.sport}."

    loser = result.away if result.winner == result.home else result.home
    margin = abs(result.home_score - result.away_score)
    verb = "edged" if margin == 1 else "beat"
    return f"{result.winner} {verb} {loser} {score} in {result.sport}."


class SummaryService:
    def __init__(self, module: Module):
        self._module = module
        self._summaries: dict[str, SummaryResponse] = {}

    def generate(self, result: MatchFinishedPayload, caused_by: Event | None = None) -> SummaryResponse:
        summary = SummaryResponse(match_id=result.match_id, summary=summarize(result))
        self._summaries[result.match_id] = summary
        self._module.publish(
            AiTopics.SUMMARY_GENERATED,
            result.match_id,
            "Match",
            SummaryGeneratedPayload(match_id=result.match_id, summary=summary.summary),
            caused_by=caused_by,
        )
        return summary

    def get_summary(self, match_id: str) -> SummaryResponse:
        summary = self._summaries.get(match_id)
        if summary is None:
            raise ResourceNotFoundError("Summary", match_id)
        return summary


class AiModule(Module):
    name = MODULE_AI
    version = "0.1.0"
    description = "Generated match summaries"
    depends_on = (MODULE_MATCHES,)
    publishes = {AiTopics.SUMMARY_GENERATED: SummaryGeneratedPayload}

    def __init__(self, context):
        super().__init__(context)
        self.summaries = SummaryService(self)

    def _register_handlers(self) -> None:
        self.subscribe(MatchesTopics.MATCH_FINISHED, self.on_match_finished)

    async def on_match_finished(self, event: Event) -> None:
        result = self.context.contracts.decode_as(event, MatchFinishedPayload)
        self.summaries.generate(result, caused_by=event)

    async def _initialize(self) -> None:
        self.services.register_singleton(SummaryService, self.summaries)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/summaries/{match_id}", response_model=SummaryResponse)
        async def get_summary(
            match_id: str,
            summaries: SummaryService = Depends(service(SummaryService)),
        ) -> SummaryResponse:
            return summaries.get_summary(match_id)

        return router
