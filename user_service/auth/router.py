"""
Users router.

This module provides FastAPI router for the user endpoints:
- User registration
- Login (JSON body or OAuth2 password form)
- Profile lookup for the bearer of a token
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm

from user_service.auth.errors import AuthError, InvalidTokenError
from user_service.auth.jwt import Token, strip_bearer
from user_service.auth.users import REGISTERED_MESSAGE, UserCreate, UserLogin, UserService
from user_service.base_microservice import BaseMicroservice

base_service = BaseMicroservice("users")


def get_user_service(request: Request) -> UserService:
    """Dependency returning the service built at application startup."""
    return request.app.state.user_service


def extract_bearer_token(request: Request, token: Optional[str]) -> str:
    """Return the bearer token, falling back to a raw Authorization header value."""
    if token:
        return token
    header = request.headers.get("Authorization")
    if header:
        token = strip_bearer(header)
        if token:
            return token
    raise InvalidTokenError("Not authenticated")


def _token_data(token: Token) -> Dict[str, Any]:
    return {
        "access_token": token.access_token,
        "token_type": token.token_type,
        "expires_at": token.expires_at,
    }


async def ping():
    """Liveness check for the users service."""
    return {
        "status": "ok",
        "message": "Users service is alive",
        "data": {"timestamp": datetime.now(timezone.utc).isoformat()},
    }


async def register_user(
    user_data: UserCreate,
    service: UserService = Depends(get_user_service),
):
    """
    Register a new user.

    Args:
        user_data: User registration data
        service: User service

    Returns:
        Dict with the confirmation message
    """
    try:
        user = await service.create_user(user_data)
    except AuthError as e:
        base_service.log_event("user.register.failed", {
            "email": user_data.email,
            "reason": e.code,
        })
        raise
    except Exception as e:
        base_service.log_error(e, context="User registration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed",
        )

    base_service.log_event("user.registered", {
        "id": user.id,
        "email": user.email,
    })

    return {
        "status": "ok",
        "message": REGISTERED_MESSAGE,
        "data": None,
    }


async def _login(service: UserService, email: str, password: str) -> Dict[str, Any]:
    try:
        token = await service.login(email, password)
    except AuthError as e:
        base_service.log_event("user.login.failed", {
            "email": email,
            "reason": e.code,
        })
        raise
    except Exception as e:
        base_service.log_error(e, context="User login")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        )

    base_service.log_event("user.login", {"email": email})

    return {
        "status": "ok",
        "message": "Login successful",
        "data": _token_data(token),
    }


async def login(
    login_data: UserLogin,
    service: UserService = Depends(get_user_service),
):
    """
    Authenticate a user and return an access token.

    Unknown emails and wrong passwords produce the same response.
    """
    return await _login(service, login_data.email, login_data.password)


async def login_form(
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: UserService = Depends(get_user_service),
):
    """
    OAuth2 password flow login. The ``username`` field carries the email.
    """
    return await _login(service, form_data.username, form_data.password)


async def _profile(service: UserService, token: str) -> Dict[str, Any]:
    try:
        profile = await service.get_profile(token)
    except AuthError as e:
        base_service.log_event("user.profile.failed", {"reason": e.code})
        raise
    except Exception as e:
        base_service.log_error(e, context="Get profile")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user information",
        )

    return {
        "status": "ok",
        "message": "User information retrieved successfully",
        "data": profile,
    }


def create_router(api_prefix: str) -> APIRouter:
    """
    Build the users router for a given mount prefix.

    The OAuth2 token URL advertised in the OpenAPI schema points at the
    ``/token`` route under the same prefix.
    """
    # Header parsing only; missing tokens are reported through InvalidTokenError
    oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{api_prefix}/token", auto_error=False)

    async def get_bearer_token(
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme),
    ) -> str:
        """Extract the bearer token from the Authorization header."""
        return extract_bearer_token(request, token)

    async def get_profile(
        token: str = Depends(get_bearer_token),
        service: UserService = Depends(get_user_service),
    ):
        """
        Get the profile of the user the bearer token belongs to.
        """
        return await _profile(service, token)

    router = APIRouter(tags=["users"])
    router.add_api_route("/ping", ping, methods=["GET"], response_model=Dict[str, Any])
    router.add_api_route("/register", register_user, methods=["POST"], response_model=Dict[str, Any])
    router.add_api_route("/login", login, methods=["POST"], response_model=Dict[str, Any])
    router.add_api_route("/token", login_form, methods=["POST"], response_model=Dict[str, Any])
    router.add_api_route("/profile", get_profile, methods=["GET"], response_model=Dict[str, Any])
    return router
