from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class Address(BaseModel):
    """Adresse de facturation/livraison; seule line2 est facultative."""
    model_config = _CAMEL

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    city: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = Field(min_length=1)
    line1: str = Field(min_length=1)
    line2: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class CheckoutForm(BaseModel):
    """
    Formulaire de checkout. La livraison est une option étiquetée:
    shipping=None signifie "identique à la facturation".
    """
    model_config = _CAMEL

    billing: Address
    shipping: Optional[Address] = None
    save_info: bool = False
    terms: bool = False

    @property
    def shipping_info(self) -> bool:
        return self.shipping is not None

    def profile_update(self) -> Dict[str, Any]:
        """Valeurs enregistrées dans le profil client quand saveInfo est coché."""
        data: Dict[str, Any] = {
            "billing": self.billing.to_document(),
            "shippingInfo": self.shipping_info,
            "saveInfo": self.save_info,
        }
        if self.shipping is not None:
            data["shipping"] = self.shipping.to_document()
        return data


class CardState(BaseModel):
    """Dernier état remonté par le widget carte."""
    model_config = _CAMEL

    complete: bool = False
    brand: Optional[str] = None
    token: Optional[str] = None


class CartItemsRequest(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)


class CheckoutOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class FailureKind(str, Enum):
    # Refus de la passerelle: aucun paiement, aucune commande
    DECLINED = "declined"
    # Paiement confirmé mais commande non enregistrée: à réconcilier hors bande
    NOT_RECORDED = "not_recorded"
    # Secret absent, prix incalculable ou passerelle injoignable
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CheckoutResult:
    outcome: CheckoutOutcome
    route: str
    failure: Optional[FailureKind] = None
    order_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "route": self.route,
            "failure": self.failure.value if self.failure else None,
            "orderId": self.order_id,
            "paymentIntentId": self.payment_intent_id,
            "message": self.message,
        }
