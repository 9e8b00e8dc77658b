import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from pydantic import BaseModel

from storefront.auth.models import Identity
from storefront.cart.service import CartService, aggregate_items
from storefront.config import LANG
from storefront.dependencies import get_gateway, get_price_intents, get_store
from storefront.infra.documents import DocumentStore
from storefront.payments.client import PriceIntentSource
from storefront.payments.gateway import StripeGateway
from storefront.utils.live import ScopeDestroyed
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import optional_user
from .models import CardState, CartItemsRequest
from .registry import CheckoutRegistry, get_registry
from .workflow import CheckoutWorkflow, EmptyCartError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


class ShippingToggle(BaseModel):
    enabled: bool


# module storefront.checkout.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def start_checkout(
    req: CartItemsRequest,
    user: Optional[Identity] = Depends(optional_user),
    store: DocumentStore = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
    price_intents: PriceIntentSource = Depends(get_price_intents),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Démarre un checkout pour le panier fourni.
    - Entrée JSON: { "items": [ { "productId": "<id>", "quantity": <int> }, ... ] }
    - Invité accepté: le formulaire n'est alors pas pré-rempli et showLogin=true
    - Retour: état du workflow (id, form, ready, canSubmit, ...)
    """
    cart = CartService(aggregate_items(req.items), store, LANG)
    workflow = CheckoutWorkflow(
        cart=cart,
        identity=user,
        store=store,
        gateway=gateway,
        price_intents=price_intents,
        lang=LANG,
    )
    try:
        await workflow.start()
    except EmptyCartError as e:
        raise HTTPException(status_code=400, detail=str(e))
    registry.add(workflow)
    logger.info("checkout.start checkout=%s items=%s ready=%s", workflow.id, len(cart.items), workflow.has_client_secret)
    return workflow.to_dict()


@router.get("/{checkout_id}")
async def get_checkout(checkout_id: str, user: Optional[Identity] = Depends(optional_user),
                       registry: CheckoutRegistry = Depends(get_registry)):
    return registry.get(checkout_id, user).to_dict()


@router.put("/{checkout_id}/card")
async def update_card(checkout_id: str, state: CardState, user: Optional[Identity] = Depends(optional_user),
                      registry: CheckoutRegistry = Depends(get_registry)):
    """Dernier état du widget carte (complete, brand, token)."""
    workflow = registry.get(checkout_id, user)
    workflow.update_card(state)
    return workflow.to_dict()


@router.put("/{checkout_id}/form")
async def update_form(checkout_id: str, data: Dict[str, Any] = Body(...), user: Optional[Identity] = Depends(optional_user),
                      registry: CheckoutRegistry = Depends(get_registry)):
    workflow = registry.get(checkout_id, user)
    workflow.update_form(data)
    return workflow.to_dict()


@router.post("/{checkout_id}/shipping")
async def toggle_shipping(checkout_id: str, req: ShippingToggle, user: Optional[Identity] = Depends(optional_user),
                          registry: CheckoutRegistry = Depends(get_registry)):
    workflow = registry.get(checkout_id, user)
    workflow.toggle_shipping(req.enabled)
    return workflow.to_dict()


@router.post("/{checkout_id}/submit")
async def submit_checkout(
    checkout_id: str,
    data: Optional[Dict[str, Any]] = Body(None),
    user: Optional[Identity] = Depends(optional_user),
    registry: CheckoutRegistry = Depends(get_registry),
):
    """
    Soumet le checkout: paiement puis enregistrement de la commande.
    - Body facultatif: dernière version du formulaire (sinon le dernier formulaire validé)
    - 422 si le formulaire est invalide, 409 si le paiement n'est pas prêt (carte, conditions) ou déjà en cours
    - Retour: { outcome, route, failure, orderId, paymentIntentId, message }
    Le checkout est libéré une fois la route terminale atteinte (GET suivant: 404).
    """
    workflow = registry.get(checkout_id, user)
    if workflow.loading.value:
        raise HTTPException(status_code=409, detail="Paiement en cours")
    if data is not None:
        workflow.update_form(data)
    if workflow.form is None:
        raise HTTPException(status_code=422, detail=workflow.form_errors or "Formulaire incomplet")
    if not workflow.can_submit:
        raise HTTPException(status_code=409, detail="Paiement non prêt")
    try:
        result = await workflow.submit(workflow.form)
    except ScopeDestroyed:
        raise HTTPException(status_code=410, detail="Checkout terminé")
    registry.finish(checkout_id)
    return result.to_dict()


@router.delete("/{checkout_id}", status_code=204)
async def destroy_checkout(checkout_id: str, user: Optional[Identity] = Depends(optional_user),
                           registry: CheckoutRegistry = Depends(get_registry)):
    registry.remove(checkout_id, user)
    return Response(status_code=204)
