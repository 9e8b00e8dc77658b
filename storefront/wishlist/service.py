"""
Liste d'envies: produits référencés par le profil client (customerData.wishList).
"""
from typing import Any, Dict, List, Optional

from storefront.config import LANG
from storefront.consts import Collections
from storefront.infra.documents import DocumentStore


async def load_wish_list(profile: Optional[Dict[str, Any]], store: DocumentStore, lang: str = LANG) -> List[Dict[str, Any]]:
    """Charge tous les produits en parallèle; un produit supprimé reste listé avec son seul id."""
    ids = [str(i) for i in ((profile or {}).get("wishList") or [])]
    if not ids:
        return []
    snapshots = await store.get_many(Collections.PRODUCTS.for_lang(lang), ids)
    return [{"id": s.id, **(s.data or {})} for s in snapshots]
