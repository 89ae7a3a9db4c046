from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import Optional
import logging

from ..core.config import settings
from ..models.user import User
from ..core.security import verify_password, get_password_hash, create_admin_token
from ..schemas.auth import AdminLogin, AdminResponse, TokenResponse

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def create_admin(self, email: str, password: str) -> User:
        """Create an administrator account."""
        existing_user = self.db.query(User).filter(User.email == email).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            is_active=True,
        )

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        return user

    def ensure_admin(self, email: Optional[str], password: Optional[str]) -> Optional[User]:
        """Seed the administrator account when none exists yet."""
        if self.db.query(User).first() is not None:
            return None
        if not email or not password:
            logger.warning("No administrator account exists and ADMIN_EMAIL/ADMIN_PASSWORD are not set")
            return None

        logger.info(f"Creating administrator account {email}")
        return self.create_admin(email, password)

    def authenticate_admin(self, login_data: AdminLogin) -> TokenResponse:
        """Authenticate the administrator and return an access token."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until and user.locked_until > datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail="Account is temporarily locked"
            )

        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        # Reset failed login attempts
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)

        token = create_admin_token(user.id, user.email)

        return TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            user=AdminResponse.model_validate(user)
        )

    def change_password(self, user: User, current_password: str, new_password: str):
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(new_password)
        self.db.commit()

    def _handle_failed_login(self, user: User):
        """Handle failed login attempt."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        # Lock account after repeated failures
        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"Administrator account {user.email} locked after failed logins")

        self.db.commit()
