"""Request-scoped providers for the route handlers."""

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.errors.exceptions import AuthenticationError
from agencyflow.models.actor import Actor
from agencyflow.services.authorization import AuthorizationGate
from agencyflow.services.notifications import NotificationFanout


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.db_session_factory() as session:
        yield session


async def get_current_actor(request: Request) -> Actor:
    """The verified caller; 401 for missing, invalid or role-less tokens."""
    caller = getattr(request.state, "user", None) or {}
    if caller.get("_auth_error"):
        raise AuthenticationError(caller["_auth_error"])
    if caller.get("sub") in (None, "", "anonymous") or not caller.get("role"):
        raise AuthenticationError("Authentication required")
    return Actor(id=caller["sub"], role=caller["role"])


def get_gate() -> AuthorizationGate:
    return AuthorizationGate()


def get_fanout(request: Request) -> NotificationFanout:
    fanout = getattr(request.app.state, "notification_fanout", None)
    return fanout if fanout is not None else NotificationFanout()


DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Gate = Annotated[AuthorizationGate, Depends(get_gate)]
Fanout = Annotated[NotificationFanout, Depends(get_fanout)]
