"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Les fonctions sont synchrones (SDK stripe); les appelants async passent par run_in_threadpool.
"""
from typing import Any, Dict, Optional

import stripe

from storefront.config import STRIPE_SECRET_KEY

# Statuts d'un PaymentIntent considérés comme une confirmation réussie
CONFIRMED_STATUSES = ("succeeded", "processing", "requires_capture")

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def intent_id_from_secret(client_secret: str) -> str:
    """Un client secret a la forme pi_XXX_secret_YYY: l'id du PaymentIntent en est le préfixe."""
    intent_id, sep, _ = (client_secret or "").partition("_secret_")
    if not sep or not intent_id:
        raise ValueError("Client secret invalide")
    return intent_id

def create_payment_intent(*, amount: int, currency: str, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Crée un PaymentIntent carte.
    - amount: montant en unités mineures (centimes)
    - metadata: ex {"orderItems": "[...]", "lang": "en"}
    Retour: dict incluant "id" et "client_secret".
    """
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        payment_method_types=["card"],
        metadata=metadata or {},
    )
    return intent.to_dict()

def confirm_payment_intent(client_secret: str, card_token: str, billing_name: str) -> Dict[str, Any]:
    """
    Confirme le PaymentIntent désigné par le client secret avec la carte tokenisée
    par le widget (tok_...), en y attachant le nom de facturation.
    Lève stripe.StripeError en cas de refus ou d'erreur de transport.
    """
    require_stripe()
    intent = stripe.PaymentIntent.confirm(
        intent_id_from_secret(client_secret),
        payment_method_data={
            "type": "card",
            "card": {"token": card_token},
            "billing_details": {"name": billing_name},
        },
    )
    return intent.to_dict()
