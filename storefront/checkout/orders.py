"""
Composition du document commande persisté (collection orders).
"""
from typing import Any, Dict, List, Optional

from storefront.auth.models import Identity
from storefront.consts import OrderStatus
from storefront.utils.clock import now_ms
from storefront.utils.stripe_format import price_to_stripe_format
from .models import CheckoutForm


def compose_order(
    form: CheckoutForm,
    payment_intent_id: str,
    price: Dict[str, float],
    order_items: List[Dict[str, Any]],
    identity: Optional[Identity],
    created_on: Optional[int] = None,
) -> Dict[str, Any]:
    """
    - price: chaque clé convertie en unités mineures
    - shipping: uniquement si le sous-formulaire de livraison est présent
    - customerId/customerName/email: uniquement pour un utilisateur authentifié
    """
    order: Dict[str, Any] = {
        "price": price_to_stripe_format(price),
        "status": OrderStatus.ORDERED.value,
        "paymentIntentId": payment_intent_id,
        "billing": form.billing.to_document(),
        "orderItems": order_items,
        "createdOn": created_on if created_on is not None else now_ms(),
    }
    if form.shipping is not None:
        order["shipping"] = form.shipping.to_document()
    if identity is not None:
        order["customerId"] = identity.uid
        order["customerName"] = identity.display_name
        order["email"] = identity.email
    return order
