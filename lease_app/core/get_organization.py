import uuid

from fastapi import HTTPException, Request


async def get_organization_id(request: Request) -> uuid.UUID:
    """Organization of the caller, placed on request.state by the auth layer."""
    organization_id = getattr(request.state, "organization_id", None)
    if not organization_id:
        raise HTTPException(status_code=401, detail="Organization context missing")
    try:
        return uuid.UUID(str(organization_id))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid organization context")


async def get_user_id(request: Request) -> uuid.UUID | None:
    user_id = getattr(request.state, "user_id", None)
    return uuid.UUID(str(user_id)) if user_id else None
