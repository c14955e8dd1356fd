"""Identity administration endpoints (admin only; role changes are root only)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from portal.api.v1.auth import get_request_context, require_csrf
from portal.api.v1.deps import get_identity_service, http_error
from portal.core.errors import PortalError
from portal.schemas.users import RoleChangeRequest, RoleChangeResponse, UserDeleteResponse, UsersListResponse
from portal.services.context import RequestContext
from portal.services.identities import IdentityService

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    identities: Annotated[IdentityService, Depends(get_identity_service)],
) -> UsersListResponse:
    """List identities with their profile integrity status (verified, failed or not_available)."""
    try:
        users = identities.list_users_with_integrity(ctx.user)
    except PortalError as e:
        raise http_error(e) from e
    return UsersListResponse(users=users)


@router.patch("/{user_id}/role", response_model=RoleChangeResponse, dependencies=[Depends(require_csrf)])
def change_role(
    user_id: int,
    body: RoleChangeRequest,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    identities: Annotated[IdentityService, Depends(get_identity_service)],
) -> RoleChangeResponse:
    """Change another identity's role. Only the root identity may do this; refusals are logged."""
    try:
        return identities.change_role(ctx.user, user_id, body.role)
    except PortalError as e:
        raise http_error(e) from e


@router.delete("/{user_id}", response_model=UserDeleteResponse, dependencies=[Depends(require_csrf)])
def delete_user(
    user_id: int,
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    identities: Annotated[IdentityService, Depends(get_identity_service)],
) -> UserDeleteResponse:
    """Delete an identity with its sessions and jobs. Not yourself, never the root identity."""
    try:
        identities.delete_user(ctx.user, user_id)
    except PortalError as e:
        raise http_error(e) from e
    return UserDeleteResponse()
