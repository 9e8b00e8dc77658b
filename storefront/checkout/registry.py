"""
Workflows de checkout actifs, indexés par id.
Un workflow démarré par un utilisateur connecté n'est accessible qu'à ce même utilisateur.
Un workflow quitte le registre à sa route terminale, à sa destruction, ou après CHECKOUT_TTL
secondes sans activité (soumission en cours exceptée).
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import HTTPException

from storefront.auth.models import Identity
from storefront.config import CHECKOUT_TTL
from .workflow import CheckoutWorkflow

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    workflow: CheckoutWorkflow
    owner: Optional[str]
    touched: float = field(default_factory=time.monotonic)


class CheckoutRegistry:
    def __init__(self, ttl: float = CHECKOUT_TTL):
        self.ttl = ttl
        self._items: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._items)

    def add(self, workflow: CheckoutWorkflow) -> None:
        self.sweep()
        owner = workflow.identity.uid if workflow.identity else None
        self._items[workflow.id] = _Entry(workflow, owner)

    def get(self, checkout_id: str, identity: Optional[Identity]) -> CheckoutWorkflow:
        entry = self._items.get(checkout_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Checkout introuvable")
        if entry.owner is not None and (identity is None or identity.uid != entry.owner):
            raise HTTPException(status_code=403, detail="Accès interdit")
        entry.touched = time.monotonic()
        return entry.workflow

    def remove(self, checkout_id: str, identity: Optional[Identity]) -> None:
        self.get(checkout_id, identity)
        self._drop(checkout_id)
        logger.info("checkout.registry destroyed checkout=%s", checkout_id)

    def finish(self, checkout_id: str) -> None:
        """Route terminale atteinte: le workflow n'a plus d'usage."""
        self._drop(checkout_id)
        logger.info("checkout.registry finished checkout=%s", checkout_id)

    def sweep(self, now: Optional[float] = None) -> int:
        now = time.monotonic() if now is None else now
        expired = [
            checkout_id for checkout_id, entry in self._items.items()
            if now - entry.touched > self.ttl and not entry.workflow.loading.value
        ]
        for checkout_id in expired:
            self._drop(checkout_id)
        if expired:
            logger.info("checkout.registry expired count=%s", len(expired))
        return len(expired)

    def _drop(self, checkout_id: str) -> None:
        entry = self._items.pop(checkout_id, None)
        if entry is not None:
            entry.workflow.destroy()

    def clear(self) -> None:
        for entry in self._items.values():
            entry.workflow.destroy()
        self._items.clear()


registry = CheckoutRegistry()


def get_registry() -> CheckoutRegistry:
    return registry
