"""
Dépendances FastAPI partagées (store de documents, passerelle de paiement, source du client secret).
Les tests les remplacent via app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from storefront.config import REST_API_URL
from storefront.customers.repository import CustomerProfiles
from storefront.infra.documents import DocumentStore
from storefront.payments.client import LocalPriceIntents, PriceIntentClient, PriceIntentSource
from storefront.payments.gateway import StripeGateway


@lru_cache(maxsize=1)
def get_store() -> DocumentStore:
    return DocumentStore()


@lru_cache(maxsize=1)
def get_gateway() -> StripeGateway:
    return StripeGateway()


def make_price_intents(store: DocumentStore, base_url: str = REST_API_URL) -> PriceIntentSource:
    # Endpoint externe configuré: HTTP; sinon le service local est appelé directement
    if base_url:
        return PriceIntentClient(base_url)
    return LocalPriceIntents(store)


@lru_cache(maxsize=1)
def get_price_intents() -> PriceIntentSource:
    return make_price_intents(get_store())


def get_profiles(store: DocumentStore = Depends(get_store)) -> CustomerProfiles:
    return CustomerProfiles(store)
