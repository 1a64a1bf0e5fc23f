"""Token-based operator auth for the landshare admin API."""

from typing import Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException, status

from landshare.api.dependencies import get_app_settings
from landshare.settings import Settings

# Development tokens, honoured only by local runs with the mock provider.
# Deployed environments authenticate with ``LANDSHARE_API__KEY`` alone.
_API_TOKENS: Dict[str, Dict[str, str]] = {
    "dev-admin-token": {"email": "admin@landshare.local", "role": "admin"},
    "dev-subadmin-token": {"email": "subadmin@landshare.local", "role": "sub_admin"},
}


def resolve_operator(token: Optional[str], settings: Settings) -> Optional[Dict[str, str]]:
    """Return the operator identity for ``token``, or ``None`` when unknown."""

    if not token:
        return None
    if settings.identity.provider == "mock" and settings.is_local:
        operator = _API_TOKENS.get(token)
        if operator:
            return dict(operator)
    if settings.api_key and token == settings.api_key:
        return {"email": "api-key@landshare.local", "role": "admin"}
    return None


def require_token(
    x_api_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, str]:
    """Validate the API key header and return the operator.

    Args:
        x_api_key: Value of the `X-API-KEY` header.

    Returns:
        dict: operator info with 'email' and 'role'.

    Raises:
        HTTPException: 401 if missing, 403 if invalid.
    """
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-API-KEY")
    operator = resolve_operator(x_api_key, settings)
    if not operator:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
    return operator


def require_role(required_role: str) -> Callable:
    """Dependency factory that enforces a required role (sub_admin/admin)."""

    def _checker(operator=Depends(require_token)):
        role = operator.get("role")
        if role == required_role or role == "admin":
            return operator
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _checker
