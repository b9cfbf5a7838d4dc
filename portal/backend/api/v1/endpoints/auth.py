"""
Auth API Endpoints.

Session login/logout, the current contact, and password management.
"""

from fastapi import APIRouter, Response

from portal.backend.core.config import get_app_config
from portal.backend.core.dependencies import CurrentAuth, DbSession
from portal.backend.schemas.auth import (
    ContactResponse,
    LoginRequest,
    MeResponse,
    OrganizationSummary,
    PasswordChangeRequest,
    SessionResponse,
    SetupPasswordRequest,
)
from portal.backend.schemas.base import ApiResponse
from portal.backend.services.auth import AuthService

router = APIRouter()


def set_session_cookie(response: Response, token: str) -> None:
    security = get_app_config().security
    response.set_cookie(
        key=security.cookie.name,
        value=token,
        max_age=security.jwt.session_expire_days * 24 * 3600,
        httponly=True,
        secure=security.cookie.secure,
        samesite=security.cookie.samesite,
        path="/",
    )


@router.post(
    "/login",
    response_model=ApiResponse[SessionResponse],
    summary="Log in",
    description="Verify email and password, set the session cookie and return the token.",
)
async def login(data: LoginRequest, db: DbSession, response: Response) -> ApiResponse[SessionResponse]:
    contact, token = await AuthService(db).login(data.email, data.password)
    set_session_cookie(response, token)
    return ApiResponse(
        data=SessionResponse(contact=ContactResponse.model_validate(contact), token=token)
    )


@router.post("/logout", response_model=ApiResponse[dict], summary="Log out")
async def logout(response: Response) -> ApiResponse[dict]:
    """Clear the session cookie."""
    response.delete_cookie(get_app_config().security.cookie.name, path="/")
    return ApiResponse(data={"logged_out": True})


@router.get("/me", response_model=ApiResponse[MeResponse], summary="Current contact")
async def me(auth: CurrentAuth, db: DbSession) -> ApiResponse[MeResponse]:
    organization = await AuthService(db).get_organization(auth.org_id)
    return ApiResponse(
        data=MeResponse(
            contact=ContactResponse.model_validate(auth.contact),
            organization=OrganizationSummary.model_validate(organization) if organization else None,
            org_id=auth.org_id,
            is_admin=auth.is_admin,
        )
    )


@router.post("/password", response_model=ApiResponse[dict], summary="Change password")
async def change_password(data: PasswordChangeRequest, auth: CurrentAuth, db: DbSession) -> ApiResponse[dict]:
    await AuthService(db).change_password(auth.contact, data.current_password, data.new_password)
    return ApiResponse(data={"changed": True})


@router.post(
    "/setup-password",
    response_model=ApiResponse[SessionResponse],
    summary="Accept an invite",
    description="Consume an invite token, set the password and start a session.",
)
async def setup_password(
    data: SetupPasswordRequest, db: DbSession, response: Response,
) -> ApiResponse[SessionResponse]:
    contact, token = await AuthService(db).setup_password(data.token, data.password)
    set_session_cookie(response, token)
    return ApiResponse(
        data=SessionResponse(contact=ContactResponse.model_validate(contact), token=token)
    )
