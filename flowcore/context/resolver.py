"""Lookup of the external records that input nodes point at.

Products live in their own store; every other record (personas, knowledge
items, saved workflow runs) lives in the knowledge base and shares one id
space. resolve(kind, ref_id) therefore looks in the store that kind belongs
to and returns whatever record has that id. Callers check record.kind when
they need a specific type.
"""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from flowcore.config import RECORD_API_TIMEOUT, RECORD_API_URL

logger = logging.getLogger(__name__)

PRODUCT_STORE = "product"
KNOWLEDGE_STORE = "kb"


class ResolvedRecord(BaseModel):
    """an external record as seen by the context assembler."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    kind: str  # product, persona, market_insight, workflow_run ...
    title: str | None = None
    payload: Any = None
    created_at: str | None = None


def record_store(kind: str) -> str:
    """Name of the store holding records of this kind."""
    return PRODUCT_STORE if kind == "product" else KNOWLEDGE_STORE


class RecordResolver(Protocol):
    async def resolve(self, kind: str, ref_id: str) -> ResolvedRecord | None:
        """Return the record or None when it does not exist."""
        ...


class InMemoryRecordResolver:
    """Resolver over a fixed snapshot of records."""

    def __init__(self, records: Iterable[ResolvedRecord] = ()) -> None:
        self._records: dict[tuple[str, str], ResolvedRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: ResolvedRecord) -> None:
        self._records[(record_store(record.kind), record.id)] = record

    async def resolve(self, kind: str, ref_id: str) -> ResolvedRecord | None:
        return self._records.get((record_store(kind), ref_id))


class HttpRecordResolver:
    """Resolve records from the flowcore service over HTTP.

    Found records are cached for the life of the resolver, so one resolver
    should not outlive the snapshot it is meant to see.
    """

    def __init__(
        self,
        base_url: str = RECORD_API_URL,
        timeout: float = RECORD_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Base URL of the flowcore server
            timeout: HTTP request timeout in seconds
            transport: optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._cache: dict[tuple[str, str], ResolvedRecord] = {}

    async def resolve(self, kind: str, ref_id: str) -> ResolvedRecord | None:
        cache_key = (record_store(kind), ref_id)
        if cache_key in self._cache:
            return self._cache[cache_key]

        url = f"{self.base_url}/api/records/{kind}/{ref_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                record = ResolvedRecord.model_validate(response.json())
        except httpx.HTTPError as e:
            logger.warning("could not resolve %s/%s from %s: %s", kind, ref_id, self.base_url, e)
            return None
        except ValueError as e:  # bad JSON or a body that is not a record
            logger.warning("malformed record %s/%s: %s", kind, ref_id, e)
            return None

        self._cache[cache_key] = record
        return record

    def clear_cache(self) -> None:
        self._cache.clear()
