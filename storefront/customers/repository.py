"""
Accès aux profils clients (collection customers, id = uid d'authentification).
"""
from typing import Any, AsyncIterator, Dict

from storefront.consts import Collections
from storefront.infra.documents import DocumentSnapshot, DocumentStore
from storefront.utils.clock import now_ms


class CustomerProfiles:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, uid: str) -> DocumentSnapshot:
        return await self.store.get(Collections.CUSTOMERS.value, uid)

    def watch(self, uid: str) -> AsyncIterator[DocumentSnapshot]:
        return self.store.watch(Collections.CUSTOMERS.value, uid)

    async def create(self, uid: str) -> None:
        await self.store.set(Collections.CUSTOMERS.value, uid, {"createdOn": now_ms()})

    async def merge(self, uid: str, data: Dict[str, Any]) -> None:
        await self.store.update(Collections.CUSTOMERS.value, uid, data)
