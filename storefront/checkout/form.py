"""
Forme du formulaire de checkout (brouillon côté UI) et règles de disponibilité de la soumission.
"""
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .models import CardState, CheckoutForm

ADDRESS_FIELDS = ("firstName", "lastName", "email", "phone", "city", "zip", "country", "line1", "line2")


def address_defaults(data: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    data = data or {}
    return {field: data.get(field) or "" for field in ADDRESS_FIELDS}


def build_form_draft(profile: Optional[Dict[str, Any]], authenticated: bool) -> Dict[str, Any]:
    """
    Brouillon initial pré-rempli depuis le profil client.
    - saveInfo est proposé tant que le profil n'a rien enregistré (jamais pour un invité)
    - la livraison n'apparaît que si le profil l'avait enregistrée comme distincte
    """
    profile = profile or {}
    draft: Dict[str, Any] = {
        "billing": address_defaults(profile.get("billing")),
        "shipping": None,
        "saveInfo": bool(authenticated and not profile.get("saveInfo")),
        "terms": False,
    }
    if profile.get("shippingInfo") and profile.get("shipping"):
        draft["shipping"] = address_defaults(profile["shipping"])
    return draft


def with_shipping(draft: Dict[str, Any], enabled: bool, saved: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Ajoute (pré-rempli) ou retire le sous-formulaire de livraison."""
    updated = dict(draft)
    if enabled:
        updated["shipping"] = draft.get("shipping") or address_defaults(saved)
    else:
        updated["shipping"] = None
    return updated


def validate_form(data: Dict[str, Any]) -> Tuple[Optional[CheckoutForm], List[Dict[str, Any]]]:
    try:
        return CheckoutForm.model_validate(data), []
    except ValidationError as e:
        return None, [{"loc": [str(p) for p in err["loc"]], "msg": err["msg"]} for err in e.errors()]


def can_submit(card: Optional[CardState], form: Optional[CheckoutForm]) -> bool:
    return bool(card is not None and card.complete and card.token and form is not None and form.terms)
