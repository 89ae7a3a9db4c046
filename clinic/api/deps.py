from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection
from typing import Optional

from ..core.config import settings
from ..core.database import SessionLocal, get_db, get_redis
from ..core.security import security, verify_token, AuthenticationError, TokenPayload
from ..models.user import User
from ..services.appointment_store import AppointmentStore
from ..services.live_feed import AppointmentFeed
from ..services.messaging import DatabaseDeliveryLog, MessagingAdapter
from ..services.messaging_gateway import HttpMessagingGateway

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def load_admin(token_payload: Optional[TokenPayload], db: Session) -> Optional[User]:
    """Active administrator named by a verified token, if any."""
    if not token_payload or not token_payload.sub or token_payload.token_type != "access":
        return None

    try:
        user_id = int(token_payload.sub)
    except ValueError:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    return user if user and user.is_active else None

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get the authenticated administrator from database."""
    user = load_admin(token_payload, db)
    if not user:
        raise AuthenticationError("User not found or deactivated")

    return user

async def get_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Require the administrator (the only account type)."""
    return current_user

# Live feed shared by every dashboard connection
def get_appointment_feed(connection: HTTPConnection) -> AppointmentFeed:
    feed = getattr(connection.app.state, "appointment_feed", None)
    if feed is None:
        feed = AppointmentFeed(SessionLocal)
        connection.app.state.appointment_feed = feed
    return feed

def get_appointment_store(
    db: Session = Depends(get_db),
    feed: AppointmentFeed = Depends(get_appointment_feed)
) -> AppointmentStore:
    return AppointmentStore(db, feed)

def get_messaging_adapter() -> MessagingAdapter:
    gateway = HttpMessagingGateway(settings.MESSAGING_FUNCTION_URL, settings.MESSAGING_API_KEY)
    return MessagingAdapter(gateway, DatabaseDeliveryLog(SessionLocal))

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic per-IP rate limiting for the public forms."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_MAX_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
