"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Header, Request

from auditflow.errors.exceptions import AuthenticationError
from auditflow.models.user import User
from auditflow.runtime import AuditRuntime
from auditflow.storage.gateway import StorageGateway


def get_runtime(request: Request) -> AuditRuntime:
    """Return the job lifecycle runtime from app state."""
    return request.app.state.runtime


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.runtime.storage


async def get_current_user(
    storage: Annotated[StorageGateway, Depends(get_storage)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the X-API-Key header to a user or raise 401."""
    if not x_api_key:
        raise AuthenticationError("X-API-Key header required")
    user = await storage.get_user_by_api_key(x_api_key)
    if user is None:
        raise AuthenticationError("Invalid API key")
    return user


# Type aliases for dependency injection
Runtime = Annotated[AuditRuntime, Depends(get_runtime)]
Storage = Annotated[StorageGateway, Depends(get_storage)]
CurrentUser = Annotated[User, Depends(get_current_user)]
