"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.domain.models import AuthenticatedUser, UserRole
from backend.services.auth_service import AuthService, InvalidSessionError
from backend.services.booking_service import BookingService
from backend.services.booking_workflow_service import BookingWorkflowService
from backend.services.showing_service import ShowingService
from backend.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _service_from_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_workflow_service(request: Request) -> BookingWorkflowService:
    return _service_from_state(request, "workflow_service", "Booking workflow service")


def get_booking_service(request: Request) -> BookingService:
    return _service_from_state(request, "booking_service", "Booking service")


def get_showing_service(request: Request) -> ShowingService:
    return _service_from_state(request, "showing_service", "Showing service")


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        return auth_service.resolve(credentials.credentials)
    except InvalidSessionError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    if not auth_service.admin_auth_enabled:
        return AuthenticatedUser(user_id="local-admin", role=UserRole.ADMIN)
    user = await require_user(credentials=credentials, auth_service=auth_service)
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges are required",
        )
    return user
