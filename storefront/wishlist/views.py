from fastapi import APIRouter, Depends, HTTPException

from storefront.auth.models import Identity
from storefront.customers.repository import CustomerProfiles
from storefront.dependencies import get_profiles
from storefront.infra.documents import DocumentStoreError
from storefront.utils.security import require_user
from .service import load_wish_list

router = APIRouter(prefix="/api/v1/profile", tags=["Profile API"])


@router.get("/wish-list")
async def wish_list(user: Identity = Depends(require_user), profiles: CustomerProfiles = Depends(get_profiles)):
    try:
        snapshot = await profiles.get(user.uid)
        items = await load_wish_list(snapshot.data, profiles.store)
    except DocumentStoreError:
        raise HTTPException(status_code=502, detail="Produits indisponibles")
    return {"items": items}
