from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.auth_schemas import (
    ChangePasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    RegisterRequest,
)
from campus_connect.services.auth_service import AuthService, get_auth_service
from campus_connect.services.user_service import UserService, get_user_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

auth_router = APIRouter()


@auth_router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    description="Create a student or manager account. Students must provide a department.",
)
async def register(
    request: Request,
    register_data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        auth_response = await auth_service.register_user(register_data)
        return ResponseBuilder.success(
            request=request,
            data=auth_response.model_dump(by_alias=True),
            message="User registered successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Registration failed", error_code="REGISTRATION_FAILED"
        )


@auth_router.post(
    "/login",
    summary="Login with email and password",
    description="Returns a bearer token and the user's profile.",
)
async def login(
    request: Request,
    login_request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        auth_response = await auth_service.login_user(
            login_request.email, login_request.password
        )
        return ResponseBuilder.success(
            request=request,
            data=auth_response.model_dump(by_alias=True),
            message="Login successful",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(message="Login failed", error_code="LOGIN_FAILED")


@auth_router.post(
    "/google",
    summary="Sign in with Google",
    description="Verifies a Google ID token and signs the user in, linking or creating the account.",
)
async def google_login(
    request: Request,
    google_request: GoogleLoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        auth_response = await auth_service.google_login(google_request.credential)
        return ResponseBuilder.success(
            request=request,
            data=auth_response.model_dump(by_alias=True),
            message="Google sign-in successful",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Google sign-in failed", error_code="GOOGLE_LOGIN_FAILED"
        )


@auth_router.get(
    "/me",
    summary="Current user",
    description="Profile of the authenticated caller, including department for students.",
)
async def get_current_user_info(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    user_service: UserService = Depends(get_user_service),
):
    try:
        profile = await user_service.get_profile(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=profile.model_dump(by_alias=True),
            message="User retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve user", error_code="USER_RETRIEVAL_FAILED"
        )


@auth_router.post(
    "/change-password",
    summary="Change password",
    description="Requires the current password unless the account has never had one.",
)
async def change_password(
    request: Request,
    password_data: ChangePasswordRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        await auth_service.change_password(current_user.user_id, password_data)
        return ResponseBuilder.success(
            request=request, message="Password changed successfully"
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to change password", error_code="PASSWORD_CHANGE_FAILED"
        )


@auth_router.post("/logout", summary="Logout")
async def logout(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
):
    """Tokens are stateless; the client simply discards its token"""
    return ResponseBuilder.success(request=request, message="Logout successful")
