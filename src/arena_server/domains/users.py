"""Users module: player profiles and friendships.

A profile is created for every account IAM registers. The module learns about
new accounts only through ``iam.user.registered``; it never calls IAM.

Subscribes:
    iam.user.registered

Published topics:
    users.profile.created -> ProfileCreatedPayload
    users.profile.updated -> ProfileUpdatedPayload
    users.friend.added    -> FriendAddedPayload
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_IAM, MODULE_USERS
from arena_server.domains.contracts import (
    FriendAddedPayload,
    IamTopics,
    ProfileCreatedPayload,
    ProfileUpdatedPayload,
    UserRegisteredPayload,
    UsersTopics,
)
from arena_server.event_bus import Event
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module


class ProfileResponse(BaseModel):
    user_id: str
    display_name: str
    bio: str = ""
    favorite_sports: list[str] = Field(default_factory=list)
    friends: list[str] = Field(default_factory=list)


class ProfileUpdateInput(BaseModel):
    display_name: str | None = None
    bio: str | None = None
    favorite_sports: list[str] | None = None


class FriendInput(BaseModel):
    friend_id: str


class ProfileService:
    """In-memory profile store."""

    def __init__(self, module: Module):
        self._module = module
        self._profiles: dict[str, ProfileResponse] = {}

    def create_profile(self, user_id: str, display_name: str, caused_by: Event | None = None) -> ProfileResponse:
        """Create a profile, or return the existing one for this user."""
        existing = self._profiles.get(user_id)
        if existing is not None:
            return existing

        profile = ProfileResponse(user_id=user_id, display_name=display_name)
        self._profiles[user_id] = profile
        self._module.publish(
            UsersTopics.PROFILE_CREATED,
            user_id,
            "Profile",
            ProfileCreatedPayload(user_id=user_id, display_name=display_name),
            caused_by=caused_by,
        )
        return profile

    def get_profile(self, user_id: str) -> ProfileResponse:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise ResourceNotFoundError("Profile", user_id)
        return profile

    def list_profiles(self) -> list[ProfileResponse]:
        return list(self._profiles.values())

    def exists(self, user_id: str) -> bool:
        return user_id in self._profiles

    def update_profile(self, user_id: str, changes: ProfileUpdateInput) -> ProfileResponse:
        profile = self.get_profile(user_id)
        updates = changes.model_dump(exclude_none=True)
        if not updates:
            return profile

        updated = profile.model_copy(update=updates)
        self._profiles[user_id] = updated
        self._module.publish(
            UsersTopics.PROFILE_UPDATED,
            user_id,
            "Profile",
            ProfileUpdatedPayload(user_id=user_id, changed_fields=sorted(updates)),
        )
        return updated

    def add_friend(self, user_id: str, friend_id: str) -> ProfileResponse:
        """Make two users friends (both directions) and publish ``users.friend.added``."""
        if user_id == friend_id:
            raise ValueError("A user cannot befriend themselves")
        profile = self.get_profile(user_id)
        friend = self.get_profile(friend_id)
        if friend_id in profile.friends:
            return profile

        profile.friends.append(friend_id)
        friend.friends.append(user_id)
        self._module.publish(
            UsersTopics.FRIEND_ADDED,
            user_id,
            "Profile",
            FriendAddedPayload(user_id=user_id, friend_id=friend_id),
        )
        return profile


class UsersModule(Module):
    name = MODULE_USERS
    version = "1.0.0"
    description = "Player profiles and friendships"
    depends_on = (MODULE_IAM,)
    publishes = {
        UsersTopics.PROFILE_CREATED: ProfileCreatedPayload,
        UsersTopics.PROFILE_UPDATED: ProfileUpdatedPayload,
        UsersTopics.FRIEND_ADDED: FriendAddedPayload,
    }

    def __init__(self, context):
        super().__init__(context)
        self.profiles = ProfileService(self)

    def _register_handlers(self) -> None:
        self.subscribe(IamTopics.USER_REGISTERED, self.on_user_registered)

    async def on_user_registered(self, event: Event) -> None:
        payload = UserRegisteredPayload.model_validate(event.payload)
        profile = self.profiles.create_profile(payload.user_id, payload.display_name, caused_by=event)
        self.log.info(f"Created profile for {profile.user_id}")

    async def _initialize(self) -> None:
        self.services.register_singleton(ProfileService, self.profiles)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/profiles", response_model=list[ProfileResponse])
        async def list_profiles(profiles: ProfileService = Depends(service(ProfileService))) -> list[ProfileResponse]:
            return profiles.list_profiles()

        @router.get("/profiles/{user_id}", response_model=ProfileResponse)
        async def get_profile(user_id: str, profiles: ProfileService = Depends(service(ProfileService))) -> ProfileResponse:
            return profiles.get_profile(user_id)

        @router.patch("/profiles/{user_id}", response_model=ProfileResponse)
        async def update_profile(
            user_id: str,
            body: ProfileUpdateInput,
            profiles: ProfileService = Depends(service(ProfileService)),
        ) -> ProfileResponse:
            return profiles.update_profile(user_id, body)

        @router.post("/profiles/{user_id}/friends", response_model=ProfileResponse)
        async def add_friend(
            user_id: str,
            body: FriendInput,
            profiles: ProfileService = Depends(service(ProfileService)),
        ) -> ProfileResponse:
            try:
                return profiles.add_friend(user_id, body.friend_id)
            except ValueError as e:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

        return router
