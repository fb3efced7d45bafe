"""Resource adapters: in-memory (demo, tests) and JSON:API over httpx."""

from crmdeck.adapters.jsonapi import JsonApiAdapter, build_query_params, deserialize
from crmdeck.adapters.memory import InMemoryAdapter, SearchableInMemoryAdapter

__all__ = [
    "InMemoryAdapter",
    "JsonApiAdapter",
    "SearchableInMemoryAdapter",
    "build_query_params",
    "deserialize",
]
