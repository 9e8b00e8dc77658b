"""Conversion montants affichés <-> unités mineures Stripe (centimes)."""
from typing import Any, Dict


def to_stripe_format(value: float) -> int:
    return int(round(float(value) * 100))


def from_stripe_format(value: int) -> float:
    return int(value) / 100


def price_to_stripe_format(price: Dict[str, Any]) -> Dict[str, int]:
    """Applique to_stripe_format à chaque clé de l'objet prix."""
    return {key: to_stripe_format(value) for key, value in price.items()}
