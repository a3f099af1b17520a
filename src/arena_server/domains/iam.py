"""IAM module: account registration.

Authentication mechanics are out of scope; the module keeps registered
accounts in memory and announces new ones so that other modules (profiles,
notifications, analytics) can react without calling IAM.

Published topics:
    iam.user.registered -> UserRegisteredPayload
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_IAM
from arena_server.domains.contracts import IamTopics, UserRegisteredPayload
from arena_server.exceptions import ResourceNotFoundError
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id


class RegistrationInput(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str


class AccountResponse(BaseModel):
    user_id: str
    email: str
    display_name: str


class IdentityService:
    """In-memory account store."""

    def __init__(self, module: Module):
        self._module = module
        self._accounts: dict[str, AccountResponse] = {}

    def register(self, email: str, display_name: str) -> AccountResponse:
        """Create an account and publish ``iam.user.registered``."""
        account = AccountResponse(user_id=generate_short_id(prefix="usr"), email=email.lower(), display_name=display_name)
        self._accounts[account.user_id] = account
        self._module.publish(
            IamTopics.USER_REGISTERED,
            account.user_id,
            "User",
            UserRegisteredPayload(**account.model_dump()),
        )
        return account

    def get_account(self, user_id: str) -> AccountResponse:
        account = self._accounts.get(user_id)
        if account is None:
            raise ResourceNotFoundError("Account", user_id)
        return account


class IamModule(Module):
    name = MODULE_IAM
    version = "1.0.0"
    description = "Account registration"
    publishes = {IamTopics.USER_REGISTERED: UserRegisteredPayload}

    async def _initialize(self) -> None:
        self.identity = IdentityService(self)
        self.services.register_singleton(IdentityService, self.identity)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
        async def register(
            body: RegistrationInput,
            identity: IdentityService = Depends(service(IdentityService)),
        ) -> AccountResponse:
            return identity.register(body.email, body.display_name)

        @router.get("/accounts/{user_id}", response_model=AccountResponse)
        async def get_account(
            user_id: str,
            identity: IdentityService = Depends(service(IdentityService)),
        ) -> AccountResponse:
            return identity.get_account(user_id)

        return router
