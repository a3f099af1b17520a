"""Chat module: rooms and messages.

Every new team gets its own room, created from ``teams.team.created``.
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_CHAT, MODULE_USERS
from arena_server.domains.contracts import (
    ChatTopics,
    MessageSentPayload,
    RoomCreatedPayload,
    TeamCreatedPayload,
    TeamsTopics,
)
from arena_server.event_bus import Event
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id


class RoomInput(BaseModel):
    name: str
    team_id: str | None = None


class RoomResponse(RoomInput):
    room_id: str


class MessageInput(BaseModel):
    sender_id: str
    text: str = Field(min_length=1, max_length=2000)


class MessageResponse(MessageInput):
    message_id: str
    room_id: str


class ChatService:
    def __init__(self, module: Module):
        self._module = module
        self._rooms: dict[str, RoomResponse] = {}
        self._messages: dict[str, list[MessageResponse]] = {}

    def create_room(self, name: str, team_id: str | None = None, caused_by: Event | None = None) -> RoomResponse:
        room = RoomResponse(room_id=generate_short_id(prefix="room"), name=name, team_id=team_id)
        self._rooms[room.room_id] = room
        self._messages[room.room_id] = []
        self._module.publish(
            ChatTopics.ROOM_CREATED,
            room.room_id,
            "Room",
            RoomCreatedPayload(room_id=room.room_id, name=name, team_id=team_id),
            caused_by=caused_by,
        )
        return room

    def get_room(self, room_id: str) -> RoomResponse:
        room = self._rooms.get(room_id)
        if room is None:
            raise ResourceNotFoundError("Room", room_id)
        return room

    def room_for_team(self, team_id: str) -> RoomResponse | None:
        return next((room for room in self._rooms.values() if room.team_id == team_id), None)

    def list_rooms(self) -> list[RoomResponse]:
        return list(self._rooms.values())

    def send_message(self, room_id: str, message: MessageInput) -> MessageResponse:
        self.get_room(room_id)
        sent = MessageResponse(message_id=generate_short_id(prefix="msg"), room_id=room_id, **message.model_dump())
        self._messages[room_id].append(sent)
        self._module.publish(
            ChatTopics.MESSAGE_SENT,
            room_id,
            "Room",
            MessageSentPayload(room_id=room_id, message_id=sent.message_id, sender_id=sent.sender_id, text=sent.text),
        )
        return sent

    def history(self, room_id: str, limit: int = 50) -> list[MessageResponse]:
        self.get_room(room_id)
        return self._messages[room_id][-limit:]


class ChatModule(Module):
    name = MODULE_CHAT
    version = "1.0.0"
    description = "Chat rooms and messages"
    depends_on = (MODULE_USERS,)
    publishes = {
        ChatTopics.ROOM_CREATED: RoomCreatedPayload,
        ChatTopics.MESSAGE_SENT: MessageSentPayload,
    }

    def __init__(self, context):
        super().__init__(context)
        self.chat = ChatService(self)

    def _register_handlers(self) -> None:
        self.subscribe(TeamsTopics.TEAM_CREATED, self.on_team_created)

    async def on_team_created(self, event: Event) -> None:
        team = self.context.contracts.decode_as(event, TeamCreatedPayload)
        if self.chat.room_for_team(team.team_id) is None:
            self.chat.create_room(f"{team.name} team chat", team_id=team.team_id, caused_by=event)

    async def _initialize(self) -> None:
        self.services.register_singleton(ChatService, self.chat)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
        async def create_room(body: RoomInput, chat: ChatService = Depends(service(ChatService))) -> RoomResponse:
            return chat.create_room(body.name, body.team_id)

        @router.get("/rooms", response_model=list[RoomResponse])
        async def list_rooms(chat: ChatService = Depends(service(ChatService))) -> list[RoomResponse]:
            return chat.list_rooms()

        @router.post("/rooms/{room_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
        async def send_message(
            room_id: str,
            body: MessageInput,
            chat: ChatService = Depends(service(ChatService)),
        ) -> MessageResponse:
            return chat.send_message(room_id, body)

        @router.get("/rooms/{room_id}/messages", response_model=list[MessageResponse])
        async def history(
            room_id: str,
            limit: int = 50,
            chat: ChatService = Depends(service(ChatService)),
        ) -> list[MessageResponse]:
            return chat.history(room_id, limit)

        return router
