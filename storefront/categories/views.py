from fastapi import APIRouter, Depends, HTTPException

from storefront.auth.models import Identity
from storefront.dependencies import get_store
from storefront.infra.documents import DocumentStore, DocumentStoreError
from storefront.utils.security import require_admin
from .service import NEW_CATEGORY_ID, CategoryCreate, CategoryData, category_exists, get_category_form, save_category

router = APIRouter(prefix="/api/v1/categories", tags=["Categories API"])


@router.get("/{category_id}")
async def get_category(category_id: str, user: Identity = Depends(require_admin),
                       store: DocumentStore = Depends(get_store)):
    try:
        return await get_category_form(category_id, store)
    except DocumentStoreError:
        raise HTTPException(status_code=502, detail="Catégorie indisponible")


@router.post("", status_code=201)
async def create_category(req: CategoryCreate, user: Identity = Depends(require_admin),
                          store: DocumentStore = Depends(get_store)):
    if req.id == NEW_CATEGORY_ID:
        raise HTTPException(status_code=400, detail="Identifiant réservé")
    try:
        await save_category(req.id, req, store)
    except DocumentStoreError:
        raise HTTPException(status_code=502, detail="Enregistrement impossible")
    return {"id": req.id}


@router.put("/{category_id}")
async def edit_category(category_id: str, req: CategoryData, user: Identity = Depends(require_admin),
                        store: DocumentStore = Depends(get_store)):
    """Édition: l'id vient du chemin, il n'est jamais modifiable; 404 si la catégorie n'existe pas."""
    try:
        if not await category_exists(category_id, store):
            raise HTTPException(status_code=404, detail="Catégorie introuvable")
        await save_category(category_id, req, store)
    except DocumentStoreError:
        raise HTTPException(status_code=502, detail="Enregistrement impossible")
    return {"id": category_id}
