import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from storefront.auth.models import Identity
from storefront.utils.security import optional_user
from .service import StateService
from .sessions import get_session_state

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/state", tags=["State API"])

# Le profil est lu via le flux de projection: sans première valeur, la requête échoue
CURRENT_USER_TIMEOUT = 10.0


@router.get("/me")
async def current_user(user: Optional[Identity] = Depends(optional_user),
                       state: StateService = Depends(get_session_state)):
    """
    Utilisateur courant {authData, customerData}, ou null pour un invité
    (ou tant que le dialogue de connexion n'a pas validé la session).
    """
    state.attach(user)
    try:
        current = await asyncio.wait_for(state.current(), timeout=CURRENT_USER_TIMEOUT)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Profil indisponible")
    return {"user": current.to_dict() if current else None}


@router.get("/stream")
async def stream_user(request: Request, user: Optional[Identity] = Depends(optional_user),
                      state: StateService = Depends(get_session_state)):
    """
    Server-sent events: une ligne `data:` par changement de l'utilisateur courant
    (suivi du profil client et des résultats du dialogue de connexion de la même session).
    """
    state.attach(user)

    async def events():
        changes = state.user_changes()
        try:
            async for current in changes:
                if await request.is_disconnected():
                    break
                payload = current.to_dict() if current else None
                yield f"data: {json.dumps({'user': payload})}\n\n"
        finally:
            await changes.aclose()
            logger.info("state.stream closed uid=%s", user.uid if user else None)

    return StreamingResponse(events(), media_type="text/event-stream",
                             headers={"Cache-Control": "no-store"})
