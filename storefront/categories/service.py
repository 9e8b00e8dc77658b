"""
Éditeur de catégories (dashboard): un document {name, description} par slug.
L'id est choisi à la création et ne change plus ensuite.
"""
import logging
from typing import Any, Dict

from pydantic import BaseModel, Field

from storefront.config import LANG
from storefront.consts import Collections, URL_REGEX
from storefront.infra.documents import DocumentStore

logger = logging.getLogger(__name__)

NEW_CATEGORY_ID = "new"


class CategoryData(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""


class CategoryCreate(CategoryData):
    id: str = Field(pattern=URL_REGEX)


async def get_category_form(category_id: str, store: DocumentStore, lang: str = LANG) -> Dict[str, Any]:
    """
    Valeurs du formulaire d'édition.
    - "new": formulaire vierge, isEdit=False
    - sinon: document existant (champs vides s'il n'existe pas), isEdit=True
    """
    if category_id == NEW_CATEGORY_ID:
        return {"id": None, "name": "", "description": "", "isEdit": False}
    snapshot = await store.get(Collections.CATEGORIES.for_lang(lang), category_id)
    data = snapshot.data or {}
    return {
        "id": category_id,
        "name": data.get("name") or "",
        "description": data.get("description") or "",
        "isEdit": True,
    }


async def save_category(category_id: str, data: CategoryData, store: DocumentStore, lang: str = LANG) -> None:
    await store.set(Collections.CATEGORIES.for_lang(lang), category_id, data.model_dump(include={"name", "description"}))
    logger.info("categories.save id=%s lang=%s", category_id, lang)


async def category_exists(category_id: str, store: DocumentStore, lang: str = LANG) -> bool:
    snapshot = await store.get(Collections.CATEGORIES.for_lang(lang), category_id)
    return snapshot.exists
