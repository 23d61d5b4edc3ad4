from typing import Annotated

from fastapi import Depends, Header
from loguru import logger
from pydantic import BaseModel

from app.domain.access.access_policy import ROLE_ADMIN
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

# Identity is asserted by the upstream gateway through these headers.
USER_ID_HEADER = "X-User-Id"
USER_TIER_HEADER = "X-User-Tier"
USER_ROLE_HEADER = "X-User-Role"


class User(BaseModel):
    user_id: str
    tier: str | None = None
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


async def get_optional_user(
    user_id: str | None = Header(None, alias=USER_ID_HEADER),
    tier: str | None = Header(None, alias=USER_TIER_HEADER),
    role: str | None = Header(None, alias=USER_ROLE_HEADER),
) -> User | None:
    if not user_id or not user_id.strip():
        return None
    return User(user_id=user_id.strip(), tier=tier, role=role)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise AppError(
            errcode=AppErrorCode.E_UNAUTHENTICATED,
            errmesg=f"Missing {USER_ID_HEADER} header",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )
    logger.debug("Authenticated user_id: {}", user.user_id)
    return user


async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise AppError(
            errcode=AppErrorCode.E_FORBIDDEN,
            errmesg="Admin role required",
            status_code=HttpStatusCode.FORBIDDEN,
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
