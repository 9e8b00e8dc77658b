import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from storefront.config import LANG
from storefront.dependencies import get_store
from storefront.infra.documents import DocumentStore, DocumentStoreError
from storefront.utils.rate_limit import optional_rate_limit
from .service import create_checkout_intent

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/stripe", tags=["Payments API"])


class PriceIntentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_items: List[Dict[str, Any]] = Field(default_factory=list, alias="orderItems")
    lang: str = Field(default=LANG, pattern=r"^[a-z]{2}$")


# module storefront.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_price_intent(req: PriceIntentRequest, store: DocumentStore = Depends(get_store)) -> Dict[str, str]:
    """
    Crée un PaymentIntent pour les lignes de commande valorisées côté serveur.
    - Entrée JSON: { "orderItems": [ { "id": "<product_id>", "quantity": <int>, "attributes": {} } ], "lang": "en" }
    - Sécurité: rate limit (10 req / 60s); le montant n'est jamais fourni par le client
    - Retour: { "clientSecret": "pi_..._secret_..." }
    - Erreurs: 400 si panier invalide, 502 si les produits ou Stripe sont indisponibles
    """
    try:
        secret = await create_checkout_intent(req.order_items, req.lang, store)
    except HTTPException:
        raise
    except DocumentStoreError:
        raise HTTPException(status_code=502, detail="Produits indisponibles")
    except Exception:
        logger.exception("Erreur create_price_intent")
        raise HTTPException(status_code=502, detail="Paiement indisponible")
    return {"clientSecret": secret}
