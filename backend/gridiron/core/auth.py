"""
Auth module with JWT token validation

Tokens are issued by the external auth provider; this module only verifies
them and hands the opaque user id to the services.
"""

from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import jwt
import logging

from gridiron.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer()


def verify_token(token: str) -> Optional[str]:
    """Verify a JWT token and return the user id it was issued for"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    return str(user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Extract and validate current user id from JWT token"""
    user_id = verify_token(credentials.credentials)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


async def require_cron_secret(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    """Guard for batch endpoints triggered by the scheduler"""
    if not settings.CRON_SECRET or credentials.credentials != settings.CRON_SECRET:
        logger.error("Unauthorized batch job attempt")
        raise HTTPException(status_code=401, detail="Unauthorized")
