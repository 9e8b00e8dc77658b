"""
Projection de session: combine l'identité authentifiée, la validité de connexion
et le profil client en une valeur unique "utilisateur courant".

La validité de connexion n'est pas un drapeau libre: elle ne change qu'à travers
open_login() (ouverture du dialogue) et apply_policy() (résultat explicite d'un parcours).
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from storefront.auth.models import Identity, PolicyDecision, PolicyResult
from storefront.customers.repository import CustomerProfiles
from storefront.utils.live import LiveValue

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class CurrentUser:
    identity: Identity
    profile: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authData": {
                "uid": self.identity.uid,
                "email": self.identity.email,
                "displayName": self.identity.display_name,
            },
            "customerData": self.profile,
        }


class StateService:
    def __init__(self, profiles: CustomerProfiles, identity: Optional[Identity] = None):
        self.profiles = profiles
        self.identity: LiveValue[Optional[Identity]] = LiveValue(identity)
        self._login_valid: LiveValue[bool] = LiveValue(True)

    @property
    def login_valid(self) -> bool:
        return self._login_valid.value

    def open_login(self) -> None:
        # Dialogue ouvert: la session n'est pas encore validée par la politique
        self._login_valid.set(False)

    def apply_policy(self, result: PolicyResult) -> None:
        if result.allowed:
            if result.identity is not None and result.identity != self.identity.value:
                self.identity.set(result.identity)
            self._login_valid.set(True)
        elif result.decision is PolicyDecision.NEEDS_SIGNUP:
            self.identity.set(None)

    def attach(self, identity: Optional[Identity]) -> None:
        """Identité portée par le jeton de la requête courante (cookie ou Bearer)."""
        if identity != self.identity.value:
            self.identity.set(identity)

    def sign_out(self) -> None:
        self.identity.set(None)

    async def user_changes(self) -> AsyncIterator[Optional[CurrentUser]]:
        """
        À chaque changement d'identité ou de validité: suit le profil de l'utilisateur
        (une émission par version du document) si les deux sont présents, sinon émet None.
        Deux valeurs consécutives égales ne sont émises qu'une fois.
        """
        out: asyncio.Queue = asyncio.Queue()
        inner: Optional[asyncio.Task] = None

        async def follow(identity: Optional[Identity], valid: bool) -> None:
            if identity is None or not valid:
                out.put_nowait(None)
                return
            async for snapshot in self.profiles.watch(identity.uid):
                out.put_nowait(CurrentUser(identity, snapshot.data if snapshot.exists else None))

        def _log_failure(task: asyncio.Task) -> None:
            if not task.cancelled() and task.exception() is not None:
                logger.error("state.user_changes profile subscription failed", exc_info=task.exception())

        def restart(_=None) -> None:
            nonlocal inner
            if inner is not None:
                inner.cancel()
            inner = asyncio.ensure_future(follow(self.identity.value, self._login_valid.value))
            inner.add_done_callback(_log_failure)

        unsubscribes = [self.identity.listen(restart), self._login_valid.listen(restart)]
        restart()
        last: Any = _UNSET
        try:
            while True:
                value = await out.get()
                if value == last:
                    continue
                last = value
                yield value
        finally:
            for unsubscribe in unsubscribes:
                unsubscribe()
            if inner is not None:
                inner.cancel()

    async def current(self) -> Optional[CurrentUser]:
        changes = self.user_changes()
        try:
            return await changes.__anext__()
        finally:
            await changes.aclose()
