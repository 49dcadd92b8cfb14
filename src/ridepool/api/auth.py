from fastapi import Header, HTTPException, Request

from ridepool.core.exceptions import ConfigurationError


def verify_api_key(request: Request, x_api_key: str = Header(...)) -> str:
    """Validates API key from X-API-Key header."""
    api_key = getattr(request.app.state, "api_key", None)

    if not api_key:
        raise ConfigurationError("API key not configured")

    if x_api_key != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


def get_current_user_id(x_user_id: str = Header(...)) -> str:
    """Caller identity forwarded by the gateway in X-User-Id."""
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id.strip()
