"""
Panier: lignes {productId, quantity} et prix total calculé depuis les documents produits.
Aucune écriture: le panier est en lecture seule pour le checkout.
"""
import logging
from typing import Any, Dict, List

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from storefront.config import LANG
from storefront.consts import Collections
from storefront.infra.documents import DocumentStore

logger = logging.getLogger(__name__)


class CartItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str
    quantity: int


def aggregate_items(items: List[Dict[str, Any]]) -> List[CartItem]:
    """
    Agrège un panier brut [{productId, quantity}, ...] par produit.
    - Ignore les lignes invalides (id vide, quantity <= 0).
    - Soulève HTTPException(400) si aucune ligne valide n'est présente.
    """
    quantities: Dict[str, int] = {}
    for it in items or []:
        product_id = str(it.get("productId") or it.get("product_id") or "").strip()
        try:
            qty = int(it.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        if not product_id or qty <= 0:
            continue
        quantities[product_id] = quantities.get(product_id, 0) + qty
    if not quantities:
        raise HTTPException(status_code=400, detail="Panier invalide")
    return [CartItem(product_id=pid, quantity=qty) for pid, qty in quantities.items()]


def price_from_product(product: Dict[str, Any]) -> float:
    """Prix d'un produit (str|float|int), 0.0 si absent ou illisible."""
    try:
        return float(product.get("price") or 0)
    except (TypeError, ValueError):
        return 0.0


def order_items_from_cart(items: List[CartItem]) -> List[Dict[str, Any]]:
    # attributes: réservé aux variantes produit, toujours vide pour l'instant
    return [{"id": item.product_id, "quantity": item.quantity, "attributes": {}} for item in items]


class CartService:
    def __init__(self, items: List[CartItem], store: DocumentStore, lang: str = LANG):
        self.items = list(items)
        self.store = store
        self.lang = lang

    async def products(self) -> Dict[str, Dict[str, Any]]:
        ids = [item.product_id for item in self.items]
        snapshots = await self.store.get_many(Collections.PRODUCTS.for_lang(self.lang), ids)
        return {s.id: (s.data or {}) for s in snapshots if s.exists}

    async def total_price(self) -> float:
        """Somme prix * quantité; un produit introuvable compte pour 0."""
        products = await self.products()
        total = 0.0
        for item in self.items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning("cart.total_price missing product id=%s", item.product_id)
                continue
            total += price_from_product(product) * item.quantity
        return round(total, 2)

    async def price(self) -> Dict[str, float]:
        """Objet prix de commande {total, subTotal}."""
        total = await self.total_price()
        return {"total": total, "subTotal": total}
