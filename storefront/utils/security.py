from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.responses import Response

from storefront.auth.models import Identity
from storefront.config import COOKIE_SECURE

COOKIE_NAME = "sb_access"


def set_session_cookie(response: Response, access_token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=60 * 60,
        path="/",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")


def get_access_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    return token or request.cookies.get(COOKIE_NAME)


def optional_user(request: Request) -> Optional[Identity]:
    """Identity de la session si présente et valide, None pour un invité."""
    token = get_access_token(request)
    if not token:
        return None
    # Délégué au service Auth
    from storefront.auth import service as auth_service
    return auth_service.get_identity_from_token(token)


def get_current_user(request: Request, identity: Optional[Identity] = Depends(optional_user)) -> Identity:
    if identity is None:
        if not get_access_token(request):
            raise HTTPException(status_code=401, detail="Non authentifié")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return identity


def require_user(user: Identity = Depends(get_current_user)) -> Identity:
    return user


def require_admin(user: Identity = Depends(get_current_user)) -> Identity:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
