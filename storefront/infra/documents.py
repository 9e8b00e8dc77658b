"""
Magasin de documents (collection + id) au-dessus de Supabase.

Chaque collection est une table PostgREST à deux colonnes:
    id   text primary key
    data jsonb
Les appels du SDK supabase sont bloquants: ils passent par le threadpool Starlette.
- get: lecture unique -> DocumentSnapshot (exists=False si absent)
- set: upsert complet du document, lève DocumentStoreError en cas d'échec
- update: fusion superficielle avec le document existant puis set
- watch: abonnement "live" par polling, émet à chaque changement
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from starlette.concurrency import run_in_threadpool

import storefront.infra.supabase_client as supabase_client
from storefront.config import DOCUMENT_POLL_INTERVAL

logger = logging.getLogger(__name__)


class DocumentStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    exists: bool
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Document aplati {id, ...data}, comme attendu par les vues."""
        return {"id": self.id, **(self.data or {})}


class DocumentStore:
    def __init__(self, poll_interval: float = DOCUMENT_POLL_INTERVAL):
        self.poll_interval = poll_interval

    def _fetch(self, collection: str, doc_id: str) -> DocumentSnapshot:
        try:
            res = (
                supabase_client.get_supabase()
                .table(collection)
                .select("id, data")
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("documents.get failed collection=%s id=%s", collection, doc_id)
            raise DocumentStoreError(f"Lecture impossible: {collection}/{doc_id}") from e
        rows = res.data or []
        if not rows:
            return DocumentSnapshot(id=doc_id, exists=False)
        return DocumentSnapshot(id=doc_id, exists=True, data=rows[0].get("data") or {})

    def _upsert(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            (
                supabase_client.get_service_supabase()
                .table(collection)
                .upsert({"id": doc_id, "data": data})
                .execute()
            )
        except Exception as e:
            logger.exception("documents.set failed collection=%s id=%s", collection, doc_id)
            raise DocumentStoreError(f"Écriture impossible: {collection}/{doc_id}") from e

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        return await run_in_threadpool(self._fetch, collection, doc_id)

    async def get_many(self, collection: str, ids: Iterable[str]) -> List[DocumentSnapshot]:
        """Lectures concurrentes, résultats dans l'ordre des ids."""
        return list(await asyncio.gather(*(self.get(collection, i) for i in ids)))

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await run_in_threadpool(self._upsert, collection, doc_id, data)

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        current = await self.get(collection, doc_id)
        merged = {**(current.data or {}), **data}
        await self.set(collection, doc_id, merged)

    async def watch(self, collection: str, doc_id: str) -> AsyncIterator[DocumentSnapshot]:
        """
        Émet l'état courant du document puis chaque nouvelle version observée.
        Une erreur de lecture n'interrompt pas l'abonnement: elle est journalisée
        et la lecture est retentée au tick suivant.
        """
        last: Optional[DocumentSnapshot] = None
        while True:
            try:
                snapshot = await self.get(collection, doc_id)
            except DocumentStoreError:
                snapshot = None
            if snapshot is not None and snapshot != last:
                last = snapshot
                yield snapshot
            await asyncio.sleep(self.poll_interval)
