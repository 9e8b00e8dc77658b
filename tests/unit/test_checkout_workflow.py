import asyncio
import logging

import pytest

from storefront.cart.service import CartService
from storefront.checkout.models import CardState, CheckoutOutcome, FailureKind
from storefront.checkout.workflow import CheckoutWorkflow, EmptyCartError
from storefront.payments.gateway import PaymentError, PaymentResult
from storefront.utils.live import ScopeDestroyed

CARD = CardState(complete=True, brand="visa", token="tok_visa")


async def _ready(wf, form_data):
    await wf.start()
    wf.update_card(CARD)
    assert wf.update_form(form_data) == []
    return wf


def test_authenticated_submit_writes_order_and_reaches_success(make_workflow, store, gateway, user_identity, billing_data):
    routes = []

    async def scenario():
        wf = await _ready(make_workflow(identity=user_identity, on_navigate=routes.append),
                          {"billing": billing_data, "terms": True})
        assert wf.can_submit
        return wf, await wf.submit(wf.form)

    wf, result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.SUCCESS
    assert result.route == "checkout/success"
    assert result.payment_intent_id == "pi_1"
    assert routes == ["checkout/success"]
    assert wf.route == "checkout/success"
    assert wf.loading.value is False

    orders = store.written("orders")
    assert len(orders) == 1
    order_id, order = orders[0]
    assert order_id == result.order_id
    assert order["price"] == {"total": 1999, "subTotal": 1999}
    assert order["status"] == "Ordered"
    assert order["paymentIntentId"] == "pi_1"
    assert order["billing"]["firstName"] == "A"
    assert order["orderItems"] == [{"id": "p1", "quantity": 1, "attributes": {}}]
    assert isinstance(order["createdOn"], int)
    assert order["customerId"] == "u1"
    assert order["customerName"] == "A B"
    assert order["email"] == "a@b.com"
    assert "shipping" not in order
    assert gateway.calls == [("pi_1_secret_abc", "tok_visa", "A B")]


def test_declined_payment_writes_nothing_and_reaches_error(make_workflow, store, gateway, user_identity, billing_data):
    gateway.result = PaymentResult(error=PaymentError(message="card_declined"))
    routes = []

    async def scenario():
        wf = await _ready(make_workflow(identity=user_identity, on_navigate=routes.append),
                          {"billing": billing_data, "terms": True})
        return wf, await wf.submit(wf.form)

    wf, result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.ERROR
    assert result.failure is FailureKind.DECLINED
    assert result.message == "card_declined"
    assert routes == ["checkout/error"]
    assert store.written("orders") == []
    assert wf.loading.value is False


def test_shipping_subform_is_persisted_only_when_present(make_workflow, store, billing_data, shipping_data):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "shipping": shipping_data, "terms": True})
        return await wf.submit(wf.form)

    result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.SUCCESS
    _, order = store.written("orders")[0]
    assert order["shipping"]["firstName"] == "C"
    assert order["shipping"]["line1"] == "2 rue du Bac"


def test_guest_order_has_no_customer_fields(make_workflow, store, billing_data):
    async def scenario():
        wf = make_workflow()
        assert wf.show_login is True
        await _ready(wf, {"billing": billing_data, "terms": True})
        return await wf.submit(wf.form)

    result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.SUCCESS
    _, order = store.written("orders")[0]
    for key in ("customerId", "customerName", "email"):
        assert key not in order


def test_destroy_during_confirmation_suppresses_navigation_and_loading_flip(make_workflow, store, gateway, user_identity, billing_data):
    routes = []

    async def scenario():
        gateway.release = asyncio.Event()
        wf = await _ready(make_workflow(identity=user_identity, on_navigate=routes.append),
                          {"billing": billing_data, "terms": True})
        task = asyncio.ensure_future(wf.submit(wf.form))
        while not gateway.calls:
            await asyncio.sleep(0)
        assert wf.loading.value is True
        wf.destroy()
        gateway.release.set()
        return wf, await task

    wf, result = asyncio.run(scenario())

    assert routes == []
    assert wf.route is None
    assert wf.loading.value is True
    # Le paiement confirmé est tout de même enregistré
    assert result.outcome is CheckoutOutcome.SUCCESS
    assert len(store.written("orders")) == 1


def test_destroy_during_start_abandons_price_intent(make_workflow, price_intents):
    async def scenario():
        price_intents.release = asyncio.Event()
        wf = make_workflow()
        task = asyncio.ensure_future(wf.start())
        while not price_intents.calls:
            await asyncio.sleep(0)
        wf.destroy()
        with pytest.raises(ScopeDestroyed):
            await task
        return wf

    wf = asyncio.run(scenario())
    assert wf.has_client_secret is False


def test_submit_after_destroy_is_rejected(make_workflow, billing_data):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        wf.destroy()
        assert wf.can_submit is False
        with pytest.raises(ScopeDestroyed):
            await wf.submit(wf.form)

    asyncio.run(scenario())


def test_client_secret_is_consumed_by_first_submit(make_workflow, store, gateway, billing_data):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        first = await wf.submit(wf.form)
        second = await wf.submit(wf.form)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.outcome is CheckoutOutcome.SUCCESS
    assert second.failure is FailureKind.UNAVAILABLE
    assert second.route == "checkout/error"
    assert len(gateway.calls) == 1
    assert len(store.written("orders")) == 1


def test_missing_client_secret_ends_on_error_without_gateway_call(make_workflow, gateway, price_intents, billing_data):
    price_intents.exc = RuntimeError("price-intent down")

    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        assert wf.has_client_secret is False
        return await wf.submit(wf.form)

    result = asyncio.run(scenario())

    assert result.failure is FailureKind.UNAVAILABLE
    assert gateway.calls == []


def test_gateway_transport_failure_is_unavailable(make_workflow, store, gateway, billing_data):
    gateway.exc = ConnectionError("stripe unreachable")

    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        return wf, await wf.submit(wf.form)

    wf, result = asyncio.run(scenario())

    assert result.failure is FailureKind.UNAVAILABLE
    assert store.written("orders") == []
    assert wf.loading.value is False


def test_order_write_failure_is_not_recorded_and_logged_critical(make_workflow, store, billing_data, caplog):
    store.fail_writes = {"orders"}

    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        return await wf.submit(wf.form)

    with caplog.at_level(logging.CRITICAL, logger="storefront.checkout.workflow"):
        result = asyncio.run(scenario())

    assert result.failure is FailureKind.NOT_RECORDED
    assert result.payment_intent_id == "pi_1"
    assert result.route == "checkout/error"
    assert any(r.levelno == logging.CRITICAL and "pi_1" in r.getMessage() for r in caplog.records)


def test_save_info_merges_profile_for_authenticated_user(make_workflow, store, user_identity, billing_data):
    async def scenario():
        wf = await _ready(make_workflow(identity=user_identity),
                          {"billing": billing_data, "saveInfo": True, "terms": True})
        result = await wf.submit(wf.form)
        await asyncio.sleep(0)
        return result

    result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.SUCCESS
    profile = store.docs[("customers", "u1")]
    assert profile["saveInfo"] is True
    assert profile["shippingInfo"] is False
    assert profile["billing"]["city"] == "Paris"
    assert "shipping" not in profile


def test_save_info_failure_does_not_block_order(make_workflow, store, user_identity, billing_data):
    store.fail_writes = {"customers"}

    async def scenario():
        wf = await _ready(make_workflow(identity=user_identity),
                          {"billing": billing_data, "saveInfo": True, "terms": True})
        result = await wf.submit(wf.form)
        await asyncio.sleep(0)
        return result

    result = asyncio.run(scenario())

    assert result.outcome is CheckoutOutcome.SUCCESS
    assert len(store.written("orders")) == 1


def test_guest_save_info_is_ignored(make_workflow, store, billing_data):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "saveInfo": True, "terms": True})
        return await wf.submit(wf.form)

    asyncio.run(scenario())
    assert store.written("customers") == []


def test_start_prefills_form_from_saved_profile(make_workflow, store, user_identity, billing_data, shipping_data):
    store.seed("customers", "u1", {
        "createdOn": 1,
        "billing": billing_data,
        "saveInfo": True,
        "shippingInfo": True,
        "shipping": shipping_data,
    })

    async def scenario():
        wf = make_workflow(identity=user_identity)
        return wf, await wf.start()

    wf, draft = asyncio.run(scenario())

    assert draft["billing"]["city"] == "Paris"
    assert draft["saveInfo"] is False
    assert draft["shipping"]["firstName"] == "C"
    assert wf.show_login is False
    assert wf.has_client_secret is True


def test_start_requests_secret_for_cart_lines(make_workflow, price_intents):
    async def scenario():
        wf = make_workflow(items=[{"productId": "p1", "quantity": 1}, {"productId": "p1", "quantity": 2}])
        await wf.start()
        return wf

    wf = asyncio.run(scenario())

    assert price_intents.calls == [([{"id": "p1", "quantity": 3, "attributes": {}}], "en")]
    assert wf.order_items == [{"id": "p1", "quantity": 3, "attributes": {}}]


def test_empty_cart_cannot_start(store, gateway, price_intents):
    async def scenario():
        wf = CheckoutWorkflow(cart=CartService([], store, "en"), identity=None, store=store,
                              gateway=gateway, price_intents=price_intents, lang="en")
        await wf.start()

    with pytest.raises(EmptyCartError):
        asyncio.run(scenario())


def test_can_submit_requires_terms_and_complete_card(make_workflow, billing_data):
    async def scenario():
        wf = make_workflow()
        await wf.start()
        wf.update_form({"billing": billing_data, "terms": False})
        wf.update_card(CARD)
        no_terms = wf.can_submit
        wf.update_form({"billing": billing_data, "terms": True})
        wf.update_card(CardState(complete=False, brand="visa"))
        incomplete_card = wf.can_submit
        wf.update_card(CARD)
        return no_terms, incomplete_card, wf.can_submit, wf.brand

    no_terms, incomplete_card, ready, brand = asyncio.run(scenario())

    assert no_terms is False
    assert incomplete_card is False
    assert ready is True
    assert brand == "visa"


def test_toggle_shipping_adds_and_removes_subform(make_workflow, billing_data):
    async def scenario():
        wf = make_workflow()
        await wf.start()
        wf.update_form({"billing": billing_data, "terms": True})
        on = wf.toggle_shipping(True)
        form_with_empty_shipping = wf.form
        off = wf.toggle_shipping(False)
        return on, form_with_empty_shipping, off, wf.form

    on, form_on, off, form_off = asyncio.run(scenario())

    assert on["shipping"]["firstName"] == ""
    # Sous-formulaire vide: invalide tant qu'il n'est pas rempli
    assert form_on is None
    assert off["shipping"] is None
    assert form_off is not None and form_off.shipping is None


def test_price_failure_after_confirmation_is_not_recorded_and_logged_critical(make_workflow, store, gateway, billing_data, caplog):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        # Les produits deviennent illisibles entre la préparation et la soumission
        store.fail_reads = True
        return wf, await wf.submit(wf.form)

    with caplog.at_level(logging.CRITICAL, logger="storefront.checkout.workflow"):
        wf, result = asyncio.run(scenario())

    assert len(gateway.calls) == 1
    assert result.failure is FailureKind.NOT_RECORDED
    assert result.payment_intent_id == "pi_1"
    assert result.route == "checkout/error"
    assert store.written("orders") == []
    assert wf.loading.value is False
    assert any(r.levelno == logging.CRITICAL and "pi_1" in r.getMessage() for r in caplog.records)


def test_destroyed_workflow_ignores_form_and_shipping_updates(make_workflow, billing_data):
    async def scenario():
        wf = await _ready(make_workflow(), {"billing": billing_data, "terms": True})
        wf.destroy()
        form_before, draft_before = wf.form, wf.draft
        errors = wf.update_form({"billing": {}, "terms": False})
        draft = wf.toggle_shipping(True)
        wf.update_card(CardState(complete=False))
        return wf, form_before, draft_before, errors, draft

    wf, form_before, draft_before, errors, draft = asyncio.run(scenario())

    assert errors == []
    assert wf.form is form_before
    assert wf.draft is draft_before
    assert draft is draft_before
    assert wf.card == CARD
