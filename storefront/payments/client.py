"""
Sources du client secret d'un checkout (contrat: fetch_client_secret(orderItems, lang) -> secret).
- LocalPriceIntents: service price-intent de ce serveur, appelé directement
- PriceIntentClient: endpoint price-intent externe (POST {orderItems, lang} -> {clientSecret})
"""
from typing import Any, Dict, List, Optional, Union

import httpx

from storefront.config import PRICE_INTENT_TIMEOUT, REST_API_URL
from storefront.infra.documents import DocumentStore
from .service import create_checkout_intent


class LocalPriceIntents:
    """
    Pas d'aller-retour HTTP vers ce même serveur: la limite de débit de /api/v1/stripe/checkout
    ne s'applique qu'aux appels des navigateurs, pas aux checkouts démarrés côté serveur.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def fetch_client_secret(self, order_items: List[Dict[str, Any]], lang: str) -> str:
        return await create_checkout_intent(order_items, lang, self.store)


class PriceIntentClient:
    def __init__(self, base_url: str = REST_API_URL, timeout: float = PRICE_INTENT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch_client_secret(self, order_items: List[Dict[str, Any]], lang: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(
                f"{self.base_url}/stripe/checkout",
                json={"orderItems": order_items, "lang": lang},
            )
            resp.raise_for_status()
            secret = (resp.json() or {}).get("clientSecret")
        if not secret:
            raise ValueError("Réponse price-intent sans clientSecret")
        return secret


PriceIntentSource = Union[LocalPriceIntents, PriceIntentClient]
