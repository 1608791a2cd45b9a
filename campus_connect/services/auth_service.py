from typing import Any, Dict, Optional

from fastapi import Depends
from httpx import AsyncClient, HTTPError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from campus_connect.config.settings import settings
from campus_connect.db.models import StudentProfile, User, UserRole
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.auth_schemas import (
    AuthResponse,
    ChangePasswordRequest,
    RegisterRequest,
)
from campus_connect.services.user_service import to_user_profile
from campus_connect.utils.auth import AuthUtils
from campus_connect.utils.datetime_utils import naive_utc_now
from campus_connect.utils.logging import get_logger

logger = get_logger()

SELF_REGISTERABLE_ROLES = {UserRole.STUDENT, UserRole.MANAGER}


class AuthService:
    """Registration, password and Google sign-in, token issuance"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = self.db.execute(
            select(User)
            .options(selectinload(User.student_profile))
            .where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    def build_auth_response(self, user: User) -> AuthResponse:
        token = AuthUtils.generate_access_token(user.id, user.email, user.role.value)
        return AuthResponse(
            token=token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=to_user_profile(user),
        )

    async def register_user(self, register_data: RegisterRequest) -> AuthResponse:
        """Create a user (and student profile) in a single commit"""
        if register_data.role not in SELF_REGISTERABLE_ROLES:
            raise ValueError("ROLE_NOT_ALLOWED")

        if register_data.role == UserRole.STUDENT and not register_data.department:
            raise ValueError("DEPARTMENT_REQUIRED")

        if await self.get_user_by_email(register_data.email):
            raise ValueError("EMAIL_ALREADY_EXISTS")

        user = User(
            first_name=register_data.first_name,
            last_name=register_data.last_name,
            email=register_data.email,
            password_hash=AuthUtils.hash_password(register_data.password),
            role=register_data.role,
            student_id=register_data.student_id,
            campus_id=register_data.campus_id,
            profile_image=register_data.profile_image,
            last_login=naive_utc_now(),
        )
        if register_data.role == UserRole.STUDENT:
            user.student_profile = StudentProfile(department=register_data.department)

        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise ValueError("EMAIL_ALREADY_EXISTS")

        logger.info(f"Registered {user.role.value} user {user.id} ({user.email})")
        return self.build_auth_response(user)

    async def login_user(self, email: str, password: str) -> AuthResponse:
        user = await self.get_user_by_email(email)

        # Same code for unknown email, wrong password and Google-only accounts
        if not user or not AuthUtils.verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise ValueError("INVALID_CREDENTIALS")

        user.last_login = naive_utc_now()
        self.db.commit()

        logger.info(f"User {user.id} logged in")
        return self.build_auth_response(user)

    async def verify_google_token(self, credential: str) -> Dict[str, Any]:
        """Validate a Google ID token against Google's tokeninfo endpoint"""
        try:
            async with AsyncClient() as client:
                response = await client.get(
                    settings.GOOGLE_TOKENINFO_URL,
                    params={"id_token": credential},
                    timeout=10.0,
                )
        except HTTPError as e:
            logger.error(f"Google token verification request failed: {str(e)}")
            raise ValueError("GOOGLE_TOKEN_INVALID")

        if response.status_code != 200:
            raise ValueError("GOOGLE_TOKEN_INVALID")

        token_info = response.json()
        if token_info.get("aud") != settings.GOOGLE_CLIENT_ID:
            logger.warning("Google token issued for a different client id")
            raise ValueError("GOOGLE_TOKEN_INVALID")
        if str(token_info.get("email_verified", "false")).lower() != "true":
            raise ValueError("GOOGLE_TOKEN_INVALID")
        if not token_info.get("sub") or not token_info.get("email"):
            raise ValueError("GOOGLE_TOKEN_INVALID")

        return token_info

    async def google_login(self, credential: str) -> AuthResponse:
        """Sign in with Google, linking or creating the local account"""
        token_info = await self.verify_google_token(credential)
        google_id = str(token_info["sub"])
        email = str(token_info["email"]).lower()

        user = self.db.execute(
            select(User)
            .options(selectinload(User.student_profile))
            .where(User.google_id == google_id)
        ).scalar_one_or_none()

        if not user:
            user = await self.get_user_by_email(email)
            if user and user.google_id and user.google_id != google_id:
                raise ValueError("GOOGLE_ACCOUNT_CONFLICT")

        if user:
            user.google_id = google_id
            if not user.profile_image and token_info.get("picture"):
                user.profile_image = token_info["picture"]
        else:
            user = User(
                first_name=token_info.get("given_name") or email.split("@")[0],
                last_name=token_info.get("family_name") or "",
                email=email,
                google_id=google_id,
                role=UserRole.STUDENT,
                profile_image=token_info.get("picture"),
            )
            self.db.add(user)
            logger.info(f"Creating account for Google user {email}")

        user.last_login = naive_utc_now()
        try:
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise ValueError("EMAIL_ALREADY_EXISTS")

        return self.build_auth_response(user)

    async def change_password(
        self, user_id: int, password_data: ChangePasswordRequest
    ) -> None:
        user = self.db.get(User, user_id)
        if not user:
            raise ValueError("USER_NOT_FOUND")

        # Google-only accounts may set a first password without the current one
        if user.password_hash is not None and not AuthUtils.verify_password(
            password_data.current_password or "", user.password_hash
        ):
            raise ValueError("INVALID_CURRENT_PASSWORD")

        user.password_hash = AuthUtils.hash_password(password_data.new_password)
        self.db.commit()
        logger.info(f"Password changed for user {user_id}")


def get_auth_service(db: Session = Depends(get_sync_session)) -> AuthService:
    return AuthService(db)
