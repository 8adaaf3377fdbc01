"""User administration API router."""

from typing import Annotated

from fastapi import APIRouter, Depends

from qa_analytics.dependencies import get_user_service, require_role
from qa_analytics.schemas.auth_schema import UpdateRolesRequest, UserResponse
from qa_analytics.schemas.response_schema import ApiResponse, success_response
from qa_analytics.services.user_service import UserService

router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
    dependencies=[Depends(require_role("admin"))],
)

UserServiceDep = Annotated[UserService, Depends(get_user_service)]


@router.patch("/{user_id}/deactivate", response_model=ApiResponse[UserResponse])
async def deactivate_user(
    user_id: str,
    user_service: UserServiceDep,
) -> dict:
    """Disable a user and revoke all of their auth sessions."""
    user = await user_service.deactivate(user_id)
    return success_response(UserResponse.model_validate(user))


@router.put("/{user_id}/roles", response_model=ApiResponse[UserResponse])
async def update_roles(
    user_id: str,
    body: UpdateRolesRequest,
    user_service: UserServiceDep,
) -> dict:
    user = await user_service.set_roles(user_id, body.roles)
    return success_response(UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    user_id: str,
    user_service: UserServiceDep,
) -> dict:
    """Permanently delete a user with everything they own."""
    await user_service.delete(user_id)
    return success_response(None, message="User deleted")
