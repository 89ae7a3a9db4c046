from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, get_current_user_token
from ...services.auth_service import AuthService
from ...schemas.auth import AdminLogin, AdminResponse, ChangePassword, TokenResponse
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: AdminLogin,
    db: Session = Depends(get_db),
):
    """Authenticate the administrator and return an access token."""
    auth_service = AuthService(db)
    return auth_service.authenticate_admin(login_data)

@router.get("/me", response_model=AdminResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current administrator information."""
    return AdminResponse.model_validate(current_user)

@router.post("/change-password")
async def change_password(
    password_data: ChangePassword,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change administrator password."""
    auth_service = AuthService(db)
    auth_service.change_password(
        current_user, password_data.current_password, password_data.new_password
    )

    return {"message": "Password changed successfully"}

@router.post("/verify-token")
async def verify_token_endpoint(
    token_payload = Depends(get_current_user_token)
):
    """Verify if token is valid."""
    return {
        "valid": True,
        "user_id": token_payload.sub,
        "email": token_payload.email,
        "expires": token_payload.exp
    }
