"""
Cas d'usage 'payments': endpoint price-intent.
Valorise les lignes de commande depuis les documents produits puis crée le PaymentIntent
dont le client secret autorisera une unique confirmation.
"""
import json
import logging
from typing import Any, Dict, List

from fastapi import HTTPException
from starlette.concurrency import run_in_threadpool

from storefront.cart.service import CartService, aggregate_items
from storefront.config import STRIPE_CURRENCY
from storefront.infra.documents import DocumentStore
from storefront.utils.stripe_format import to_stripe_format
from . import stripe_client

logger = logging.getLogger(__name__)

# Limite Stripe: 500 caractères par valeur de metadata
METADATA_VALUE_LIMIT = 500

def make_metadata(order_items: List[Dict[str, Any]], lang: str) -> Dict[str, str]:
    cart_meta = [{"id": it.get("id"), "quantity": it.get("quantity")} for it in order_items]
    return {
        "orderItems": json.dumps(cart_meta)[:METADATA_VALUE_LIMIT],
        "lang": lang,
    }

async def create_checkout_intent(order_items: List[Dict[str, Any]], lang: str, store: DocumentStore) -> str:
    """
    order_items: [{"id": "<product_id>", "quantity": <int>, "attributes": {}}, ...]
    Retour: client secret du PaymentIntent créé.
    - 400 si aucune ligne valide ou montant nul
    """
    items = aggregate_items([{"productId": it.get("id"), "quantity": it.get("quantity")} for it in order_items or []])
    total = await CartService(items, store, lang).total_price()
    amount = to_stripe_format(total)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Aucun article valide")

    intent = await run_in_threadpool(
        lambda: stripe_client.create_payment_intent(
            amount=amount,
            currency=STRIPE_CURRENCY,
            metadata=make_metadata(order_items, lang),
        )
    )
    logger.info("payments.create_checkout_intent intent=%s amount=%s items=%s", intent.get("id"), amount, len(items))
    return intent["client_secret"]
