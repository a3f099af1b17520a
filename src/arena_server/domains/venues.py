"""Venues module: places where matches are played."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_VENUES
from arena_server.domains.contracts import VenueCreatedPayload, VenuesTopics
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id


class VenueInput(BaseModel):
    name: str
    city: str
    sports: list[str] = Field(default_factory=list)


class VenueResponse(VenueInput):
    venue_id: str


class VenueService:
    def __init__(self, module: Module):
        self._module = module
        self._venues: dict[str, VenueResponse] = {}

    def create_venue(self, venue: VenueInput) -> VenueResponse:
        created = VenueResponse(venue_id=generate_short_id(prefix="ven"), **venue.model_dump())
        self._venues[created.venue_id] = created
        self._module.publish(
            VenuesTopics.VENUE_CREATED,
            created.venue_id,
            "Venue",
            VenueCreatedPayload(venue_id=created.venue_id, name=created.name, city=created.city, sports=created.sports),
        )
        return created

    def get_venue(self, venue_id: str) -> VenueResponse:
        venue = self._venues.get(venue_id)
        if venue is None:
            raise ResourceNotFoundError("Venue", venue_id)
        return venue

    def list_venues(self, city: str | None = None) -> list[VenueResponse]:
        venues = list(self._venues.values())
        if city:
            venues = [v for v in venues if v.city.lower() == city.lower()]
        return venues


class VenuesModule(Module):
    name = MODULE_VENUES
    version = "1.0.0"
    description = "Sports venues"
    publishes = {VenuesTopics.VENUE_CREATED: VenueCreatedPayload}

    async def _initialize(self) -> None:
        self.services.register_singleton(VenueService, VenueService(self))

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("", response_model=VenueResponse, status_code=status.HTTP_201_CREATED)
        async def create_venue(body: VenueInput, venues: VenueService = Depends(service(VenueService))) -> VenueResponse:
            return venues.create_venue(body)

        @router.get("", response_model=list[VenueResponse])
        async def list_venues(city: str | None = None, venues: VenueService = Depends(service(VenueService))) -> list[VenueResponse]:
            return venues.list_venues(city)

        @router.get("/{venue_id}", response_model=VenueResponse)
        async def get_venue(venue_id: str, venues: VenueService = Depends(service(VenueService))) -> VenueResponse:
            return venues.get_venue(venue_id)

        return router
