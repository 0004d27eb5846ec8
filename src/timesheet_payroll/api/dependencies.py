"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.database import get_session
from timesheet_payroll.services.actor import Actor, Role


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; one request is one transaction."""
    async with get_session() as session:
        yield session


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Extract the caller identity from trusted upstream headers."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Id header is required",
        )
    try:
        role = Role(x_actor_role or Role.EMPLOYEE.value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-Role",
        ) from None
    return Actor(user_id=x_actor_id, role=role)


async def require_admin(actor: Annotated[Actor, Depends(get_actor)]) -> Actor:
    """Require an admin-level role for the request."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
AdminActor = Annotated[Actor, Depends(require_admin)]
