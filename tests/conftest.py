import os, sys
import asyncio
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

# Add src/ to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# Keep a developer's config.toml / .env from leaking into tests
os.environ.setdefault("AGF_MEMORY_CONFIG", str(Path(__file__).resolve().parent / "no-config.toml"))

from agf_memory.models import BlobBundle
from agf_memory.result import Err, Ok
from agf_memory.sql.db import Database
from agf_memory.vector import collections as collections_mod


# --- Fake Milvus ---------------------------------------------------------------


class FakeMilvus:
    """In-process stand-in for the pieces of pymilvus the store touches."""

    def __init__(self):
        self.collections: dict[str, "FakeCollection"] = {}
        self.connect_calls = 0
        self.fail_connect = False
        self.fail_drop = False
        fake = self

        class FakeCollection:
            def __init__(self, name, schema=None, using="default"):
                self.name = name
                if schema is not None:
                    self.points = {}
                    self.indexes = []
                    self.properties = {}
                    self.loaded = False
                    fake.collections[name] = self
                else:
                    existing = fake.collections[name]
                    self.__dict__ = existing.__dict__

            def create_index(self, field, params):
                self.indexes.append((field, params))

            def load(self):
                self.loaded = True

            def release(self):
                self.loaded = False

            def set_properties(self, props):
                self.properties.update(props)

            def upsert(self, rows):
                for row in rows:
                    self.points[int(row["id"])] = (
                        np.array(row["embedding"], dtype=np.float32),
                        row["payload"],
                    )

            def flush(self):
                pass

            @property
            def num_entities(self):
                return len(self.points)

            def search(self, data, anns_field=None, param=None, limit=10,
                       output_fields=None, consistency_level=None):
                q = np.array(data[0], dtype=np.float32)
                hits = []
                for pid, (vec, payload) in self.points.items():
                    denom = float(np.linalg.norm(q) * np.linalg.norm(vec)) or 1.0
                    score = float(np.dot(q, vec)) / denom
                    hits.append(SimpleNamespace(id=pid, score=score, entity={"payload": payload}))
                hits.sort(key=lambda h: h.score, reverse=True)
                return [hits[:limit]]

        def connect(alias="default", uri=None):
            fake.connect_calls += 1
            if fake.fail_connect:
                from pymilvus.exceptions import MilvusException
                raise MilvusException(message=f"cannot reach {uri}")

        def drop_collection(name, using="default"):
            if fake.fail_drop:
                from pymilvus.exceptions import MilvusException
                raise MilvusException(message=f"cannot drop {name}")
            fake.collections.pop(name, None)

        self.Collection = FakeCollection
        self.connections = SimpleNamespace(connect=connect, disconnect=lambda alias: None)
        self.utility = SimpleNamespace(
            has_collection=lambda name, using="default": name in fake.collections,
            drop_collection=drop_collection,
        )


@pytest.fixture
def fake_milvus(monkeypatch):
    fake = FakeMilvus()
    monkeypatch.setattr(collections_mod, "Collection", fake.Collection)
    monkeypatch.setattr(collections_mod, "connections", fake.connections)
    monkeypatch.setattr(collections_mod, "utility", fake.utility)
    return fake


# --- Fake blob stores ----------------------------------------------------------


class FakeBlobStore:
    """Blob collaborator keyed by file name / persona name."""

    def __init__(self, db: Database | None = None, table: str | None = None):
        self.blobs: dict[str, BlobBundle | Exception] = {}
        self.puts: list[tuple[int, dict]] = []
        self.db = db
        self.table = table
        self.get_calls: list[str] = []

    async def get(self, key):
        self.get_calls.append(key)
        blob = self.blobs.get(key)
        if blob is None:
            return Err(FileNotFoundError(key))
        if isinstance(blob, Exception):
            return Err(blob)
        return Ok(blob)

    async def post(self, data):
        if self.table == "personas":
            sql = "INSERT INTO personas (name, description, is_default) VALUES (?, ?, ?)"
            params = (data["name"], data.get("description", ""), int(data.get("is_default", 0)))
            key = data["name"]
        else:
            sql = "INSERT INTO cards (file_name) VALUES (?)"
            params = (data["file_name"],)
            key = data["file_name"]
        rowids = await self.db.run_as_transaction([sql], [params])
        self.blobs[key] = BlobBundle(data=data, avatar_uri=None)
        return Ok({"id": rowids[0]})

    async def put(self, id, data):
        self.puts.append((id, data))
        return Ok(None)


def card_blob(name: str, avatar: str | None = None) -> BlobBundle:
    return BlobBundle(data={"character": {"name": name}}, avatar_uri=avatar)


# --- SQLite --------------------------------------------------------------------


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "agf.db"))
    yield database
    asyncio.run(database.close())


async def insert_row(db: Database, sql: str, params=()) -> int:
    """Insert one row and return its id."""
    return (await db.run_as_transaction([sql], [params]))[0]


async def add_card(db: Database, file_name: str) -> int:
    return await insert_row(db, "INSERT INTO cards (file_name) VALUES (?)", (file_name,))


async def add_persona(db: Database, name: str, description: str = "", is_default: int = 0) -> int:
    return await insert_row(
        db,
        "INSERT INTO personas (name, description, is_default) VALUES (?, ?, ?)",
        (name, description, is_default),
    )


async def add_chat(db: Database, card_id: int, persona_id: int | None = None) -> int:
    return await insert_row(
        db, "INSERT INTO chats (card_id, persona_id) VALUES (?, ?)", (card_id, persona_id)
    )


async def add_message(db: Database, chat_id: int, text: str, sender: str = "character") -> int:
    return await insert_row(
        db,
        "INSERT INTO messages (chat_id, text, sender_type) VALUES (?, ?, ?)",
        (chat_id, text, sender),
    )
