import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.config import Settings, get_settings


def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
):
    """
    Guard for write/trigger endpoints (scrape start, worker invocation).
    Constant-time comparison against API_SECRET_KEY.
    """
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.API_SECRET_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return True
