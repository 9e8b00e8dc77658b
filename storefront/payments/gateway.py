"""
Passerelle de paiement vue par le checkout:
    confirm(client_secret, card_token, billing_name) -> PaymentResult
Un refus (carte déclinée, 3DS non complété, ...) n'est pas une exception: il est porté par
PaymentResult.error. Seules les pannes de transport hors Stripe remontent.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import stripe
from starlette.concurrency import run_in_threadpool

from . import stripe_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentError:
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class PaymentResult:
    payment_intent_id: Optional[str] = None
    error: Optional[PaymentError] = None

    @property
    def confirmed(self) -> bool:
        return self.error is None and bool(self.payment_intent_id)


class StripeGateway:
    async def confirm(self, client_secret: str, card_token: str, billing_name: str) -> PaymentResult:
        try:
            intent = await run_in_threadpool(
                stripe_client.confirm_payment_intent, client_secret, card_token, billing_name
            )
        except stripe.StripeError as e:
            logger.info("payments.gateway.confirm declined code=%s", getattr(e, "code", None))
            return PaymentResult(error=PaymentError(
                message=getattr(e, "user_message", None) or str(e),
                code=getattr(e, "code", None),
            ))
        except ValueError as e:
            return PaymentResult(error=PaymentError(message=str(e), code="invalid_client_secret"))

        status = intent.get("status") or ""
        if status not in stripe_client.CONFIRMED_STATUSES:
            return PaymentResult(
                payment_intent_id=intent.get("id"),
                error=PaymentError(message=f"Paiement non confirmé (status={status})", code=status or None),
            )
        return PaymentResult(payment_intent_id=intent.get("id"))
