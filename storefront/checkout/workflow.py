"""
Workflow de checkout.

Orchestre, pour une action utilisateur unique:
    1) enregistrement facultatif des infos dans le profil (tâche de fond, échec silencieux)
    2) confirmation du paiement + calcul du prix courant (attendus conjointement)
    3) écriture de la commande, strictement après une confirmation sans erreur
    4) une seule route terminale: checkout/success ou checkout/error
Le drapeau loading est remis à False sur tous les chemins de sortie tant que le workflow est vivant.
Après destroy(), aucune navigation ni bascule de loading n'est produite; une soumission déjà
engagée va néanmoins jusqu'à l'écriture de la commande pour ne pas laisser un paiement orphelin.
"""
import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Set

from storefront.auth.models import Identity
from storefront.cart.service import CartService, order_items_from_cart
from storefront.config import CHECKOUT_ERROR_ROUTE, CHECKOUT_SUCCESS_ROUTE, LANG
from storefront.consts import Collections
from storefront.customers.repository import CustomerProfiles
from storefront.infra.documents import DocumentStore, DocumentStoreError
from storefront.payments.client import PriceIntentSource
from storefront.payments.gateway import PaymentResult, StripeGateway
from storefront.utils.live import LiveValue, Scope, ScopeDestroyed
from .form import build_form_draft, can_submit, validate_form, with_shipping
from .models import CardState, CheckoutForm, CheckoutOutcome, CheckoutResult, FailureKind
from .orders import compose_order

logger = logging.getLogger(__name__)

# Références fortes vers les enregistrements de profil en cours (fire-and-forget)
_background_tasks: Set[asyncio.Task] = set()


class EmptyCartError(ValueError):
    pass


def _on_profile_saved(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.warning("checkout.save_info failed: %s", task.exception())


class CheckoutWorkflow:
    def __init__(
        self,
        *,
        cart: CartService,
        identity: Optional[Identity],
        store: DocumentStore,
        gateway: StripeGateway,
        price_intents: PriceIntentSource,
        lang: str = LANG,
        on_navigate: Optional[Callable[[str], Any]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.cart = cart
        self.identity = identity
        self.store = store
        self.profiles = CustomerProfiles(store)
        self.gateway = gateway
        self.price_intents = price_intents
        self.lang = lang
        self.scope = Scope()
        self.loading: LiveValue[bool] = LiveValue(False)
        self.show_login = identity is None
        self.saved_profile: Optional[Dict[str, Any]] = None
        self.draft: Optional[Dict[str, Any]] = None
        self.form: Optional[CheckoutForm] = None
        self.form_errors: List[Dict[str, Any]] = []
        self.card: Optional[CardState] = None
        self.order_items: List[Dict[str, Any]] = []
        self.route: Optional[str] = None
        self._on_navigate = on_navigate
        self._client_secret: Optional[str] = None

    # --- Préparation ---

    async def start(self) -> Dict[str, Any]:
        """
        Construit le brouillon de formulaire (profil lu une seule fois) puis obtient
        le client secret pour les lignes du panier.
        """
        if not self.cart.items:
            raise EmptyCartError("Panier vide")
        profile = None
        if self.identity is not None:
            try:
                snapshot = await self.scope.guard(self.profiles.get(self.identity.uid))
                profile = snapshot.data if snapshot.exists else None
            except DocumentStoreError:
                logger.warning("checkout.start profile unavailable uid=%s", self.identity.uid)
        self.saved_profile = profile
        self.draft = build_form_draft(profile, self.identity is not None)
        await self._connect_payment()
        return self.draft

    async def _connect_payment(self) -> None:
        self.order_items = order_items_from_cart(self.cart.items)
        try:
            self._client_secret = await self.scope.guard(
                self.price_intents.fetch_client_secret(self.order_items, self.lang)
            )
        except ScopeDestroyed:
            raise
        except Exception:
            logger.exception("checkout.price_intent failed checkout=%s", self.id)
            self._client_secret = None

    @property
    def has_client_secret(self) -> bool:
        return bool(self._client_secret)

    # --- État UI ---

    def update_card(self, state: CardState) -> None:
        if self.scope.alive:
            self.card = state

    def update_form(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.scope.destroyed:
            return self.form_errors
        self.draft = data
        self.form, self.form_errors = validate_form(data)
        return self.form_errors

    def toggle_shipping(self, enabled: bool) -> Optional[Dict[str, Any]]:
        if self.scope.destroyed:
            return self.draft
        draft = self.draft or build_form_draft(self.saved_profile, self.identity is not None)
        self.update_form(with_shipping(draft, enabled, (self.saved_profile or {}).get("shipping")))
        return self.draft

    @property
    def brand(self) -> Optional[str]:
        return self.card.brand if self.card else None

    @property
    def can_submit(self) -> bool:
        return self.scope.alive and not self.loading.value and can_submit(self.card, self.form)

    # --- Soumission ---

    async def submit(self, form: CheckoutForm) -> CheckoutResult:
        if self.scope.destroyed:
            raise ScopeDestroyed()
        self._save_info(form)
        self.loading.set(True)
        try:
            # L'écriture de la commande ne doit pas être interrompue par l'appelant
            result = await asyncio.shield(asyncio.ensure_future(self._place_order(form)))
        finally:
            if self.scope.alive:
                self.loading.set(False)
        self._navigate(result.route)
        return result

    def _save_info(self, form: CheckoutForm) -> None:
        if not form.save_info or self.identity is None:
            return
        task = asyncio.ensure_future(self.profiles.merge(self.identity.uid, form.profile_update()))
        _background_tasks.add(task)
        task.add_done_callback(_on_profile_saved)

    async def _place_order(self, form: CheckoutForm) -> CheckoutResult:
        # Le secret autorise une seule tentative: il est consommé ici
        secret, self._client_secret = self._client_secret, None
        card_token = self.card.token if self.card else None
        if not secret or not card_token:
            logger.warning("checkout.submit not ready checkout=%s secret=%s card=%s", self.id, bool(secret), bool(card_token))
            return self._failure(FailureKind.UNAVAILABLE, "Paiement indisponible, veuillez recommencer")

        payment, price = await asyncio.gather(
            self.gateway.confirm(secret, card_token, form.billing.full_name),
            self.cart.price(),
            return_exceptions=True,
        )
        if isinstance(payment, BaseException):
            logger.error("checkout.confirm failed checkout=%s", self.id, exc_info=payment)
            return self._failure(FailureKind.UNAVAILABLE, "Paiement indisponible, veuillez recommencer")
        if not isinstance(payment, PaymentResult) or not payment.confirmed:
            message = payment.error.message if getattr(payment, "error", None) else "Paiement refusé"
            logger.info("checkout.declined checkout=%s message=%s", self.id, message)
            return self._failure(FailureKind.DECLINED, message)

        payment_intent_id = payment.payment_intent_id
        if isinstance(price, BaseException):
            logger.critical("checkout.order_not_recorded payment_intent=%s checkout=%s reason=price",
                            payment_intent_id, self.id, exc_info=price)
            return self._failure(FailureKind.NOT_RECORDED, payment_intent_id=payment_intent_id)

        order_id = str(uuid.uuid4())
        order = compose_order(form, payment_intent_id, price, self.order_items, self.identity)
        try:
            await self.store.set(Collections.ORDERS.value, order_id, order)
        except Exception:
            logger.critical("checkout.order_not_recorded payment_intent=%s order=%s checkout=%s",
                            payment_intent_id, order_id, self.id, exc_info=True)
            return self._failure(FailureKind.NOT_RECORDED, payment_intent_id=payment_intent_id)

        logger.info("checkout.order_created order=%s payment_intent=%s items=%s customer=%s",
                    order_id, payment_intent_id, len(self.order_items),
                    self.identity.uid if self.identity else None)
        return CheckoutResult(
            outcome=CheckoutOutcome.SUCCESS,
            route=CHECKOUT_SUCCESS_ROUTE,
            order_id=order_id,
            payment_intent_id=payment_intent_id,
        )

    def _failure(self, kind: FailureKind, message: Optional[str] = None,
                 payment_intent_id: Optional[str] = None) -> CheckoutResult:
        return CheckoutResult(
            outcome=CheckoutOutcome.ERROR,
            route=CHECKOUT_ERROR_ROUTE,
            failure=kind,
            payment_intent_id=payment_intent_id,
            message=message,
        )

    def _navigate(self, route: str) -> None:
        if self.scope.destroyed:
            logger.info("checkout.navigate suppressed checkout=%s route=%s", self.id, route)
            return
        self.route = route
        if self._on_navigate is not None:
            self._on_navigate(route)

    # --- Cycle de vie ---

    def destroy(self) -> None:
        self.scope.destroy()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loading": self.loading.value,
            "canSubmit": self.can_submit,
            "ready": self.has_client_secret,
            "brand": self.brand,
            "showLogin": self.show_login,
            "form": self.draft,
            "errors": self.form_errors,
            "orderItems": self.order_items,
            "route": self.route,
        }
