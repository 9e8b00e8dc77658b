import os

# Pas de Redis pendant les tests: le lifespan n'initialise pas FastAPILimiter
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import asyncio
import copy
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront.app import app as fastapi_app
from storefront.auth.models import Identity
from storefront.cart.service import CartService, aggregate_items
from storefront.checkout.registry import CheckoutRegistry, get_registry
from storefront.checkout.workflow import CheckoutWorkflow
from storefront.dependencies import get_gateway, get_price_intents, get_store
from storefront.infra.documents import DocumentSnapshot, DocumentStoreError
from storefront.payments.gateway import PaymentResult
from storefront.state.sessions import SessionStates, get_sessions
from storefront.utils.security import optional_user


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class InMemoryDocumentStore:
    """Même interface que DocumentStore, sans Supabase."""

    def __init__(self, poll_interval: float = 0.01):
        self.docs: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.writes: List[Tuple[str, str, Dict[str, Any]]] = []
        self.fail_reads = False
        self.fail_writes: set = set()
        self.poll_interval = poll_interval

    def seed(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.docs[(collection, doc_id)] = copy.deepcopy(data)

    def written(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(i, d) for c, i, d in self.writes if c == collection]

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        if self.fail_reads:
            raise DocumentStoreError("lecture simulée en échec")
        data = self.docs.get((collection, doc_id))
        if data is None:
            return DocumentSnapshot(id=doc_id, exists=False)
        return DocumentSnapshot(id=doc_id, exists=True, data=copy.deepcopy(data))

    async def get_many(self, collection: str, ids: Iterable[str]) -> List[DocumentSnapshot]:
        return [await self.get(collection, i) for i in ids]

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        if collection in self.fail_writes:
            raise DocumentStoreError("écriture simulée en échec")
        self.docs[(collection, doc_id)] = copy.deepcopy(data)
        self.writes.append((collection, doc_id, copy.deepcopy(data)))

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        current = await self.get(collection, doc_id)
        await self.set(collection, doc_id, {**(current.data or {}), **data})

    async def watch(self, collection: str, doc_id: str):
        last = None
        while True:
            try:
                snapshot = await self.get(collection, doc_id)
            except DocumentStoreError:
                snapshot = None
            if snapshot is not None and snapshot != last:
                last = snapshot
                yield snapshot
            await asyncio.sleep(self.poll_interval)


class FakeGateway:
    def __init__(self, result: Optional[PaymentResult] = None, exc: Optional[Exception] = None):
        self.result = result or PaymentResult(payment_intent_id="pi_1")
        self.exc = exc
        self.calls: List[Tuple[str, str, str]] = []
        # Si défini, confirm() attend cet événement avant de répondre
        self.release: Optional[asyncio.Event] = None

    async def confirm(self, client_secret: str, card_token: str, billing_name: str) -> PaymentResult:
        self.calls.append((client_secret, card_token, billing_name))
        if self.release is not None:
            await self.release.wait()
        if self.exc is not None:
            raise self.exc
        return self.result


class FakePriceIntents:
    def __init__(self, secret: str = "pi_1_secret_abc", exc: Optional[Exception] = None):
        self.secret = secret
        self.exc = exc
        self.calls: List[Tuple[List[Dict[str, Any]], str]] = []
        self.release: Optional[asyncio.Event] = None

    async def fetch_client_secret(self, order_items, lang: str) -> str:
        self.calls.append((order_items, lang))
        if self.release is not None:
            await self.release.wait()
        if self.exc is not None:
            raise self.exc
        return self.secret


BILLING = {
    "firstName": "A",
    "lastName": "B",
    "email": "a@b.com",
    "phone": "0600000000",
    "city": "Paris",
    "zip": "75001",
    "country": "FR",
    "line1": "1 rue de Rivoli",
    "line2": "",
}

SHIPPING = {**BILLING, "firstName": "C", "lastName": "D", "line1": "2 rue du Bac"}


@pytest.fixture
def user_identity() -> Identity:
    return Identity(uid="u1", email="a@b.com", display_name="A B")


@pytest.fixture
def billing_data() -> Dict[str, str]:
    return dict(BILLING)


@pytest.fixture
def shipping_data() -> Dict[str, str]:
    return dict(SHIPPING)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    s = InMemoryDocumentStore()
    s.seed("products_en", "p1", {"name": "Tee", "price": 19.99})
    return s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def price_intents() -> FakePriceIntents:
    return FakePriceIntents()


@pytest.fixture
def make_workflow(store, gateway, price_intents):
    def _make(identity: Optional[Identity] = None, items=None, **kwargs) -> CheckoutWorkflow:
        cart = CartService(aggregate_items(items or [{"productId": "p1", "quantity": 1}]), store, "en")
        return CheckoutWorkflow(
            cart=cart,
            identity=identity,
            store=store,
            gateway=gateway,
            price_intents=price_intents,
            lang="en",
            **kwargs,
        )
    return _make


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture
def registry() -> CheckoutRegistry:
    return CheckoutRegistry()


@pytest.fixture
def sessions() -> SessionStates:
    return SessionStates()


@pytest.fixture
def current_user() -> Dict[str, Optional[Identity]]:
    """Identité renvoyée par optional_user; modifiable par test (None = invité)."""
    return {"identity": None}


@pytest.fixture
def client(app, store, gateway, price_intents, registry, sessions, current_user) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_price_intents] = lambda: price_intents
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_sessions] = lambda: sessions
    app.dependency_overrides[optional_user] = lambda: current_user["identity"]
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


# Aucun test n'atteint Supabase
@pytest.fixture(autouse=True)
def mock_supabase(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_auth_supabase", lambda: MagicMock())
