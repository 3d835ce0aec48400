"""NextSignal I/O package: JSON persistence and document stores."""

from nextsignal.io.persistence import encode_json, load_json, save_json, to_jsonable
from nextsignal.io.store import InMemoryStore, JsonFileStore, Store

__all__ = [
    "encode_json",
    "load_json",
    "save_json",
    "to_jsonable",
    "Store",
    "InMemoryStore",
    "JsonFileStore",
]
