"""Dataclass models for rows, bundles and search results.

Bundles are read-only aggregates rebuilt on every query::

```
CardBundle(data={"character": {"name": "Aria", ...}, ...}, avatar_uri="file:///.../aria.png")
PersonaBundle(data=PersonaData(id=1, name="Me", description="...", is_default=1), avatar_uri=None)
```

``avatar_uri`` is ``None`` when the blob store has no avatar for the entity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

SenderType = Literal["user", "character"]


@dataclass(frozen=True, slots=True)
class BlobBundle:
    """What the blob collaborator returns for a key."""

    data: Dict[str, Any]
    avatar_uri: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CardBundle:
    data: Dict[str, Any]
    avatar_uri: Optional[str] = None

    @property
    def character_name(self) -> str:
        return str((self.data.get("character") or {}).get("name", ""))


@dataclass(frozen=True, slots=True)
class PersonaData:
    id: int
    name: str
    description: str
    is_default: int = 0


@dataclass(frozen=True, slots=True)
class PersonaBundle:
    data: PersonaData
    avatar_uri: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Message:
    """A chat message shaped for rendering."""

    id: int
    text: str
    sender: SenderType
    timestamp: str


@dataclass(frozen=True, slots=True)
class ChatSearchItem:
    id: int
    character_name: str
    character_avatar_uri: str
    last_message: Optional[str]


@dataclass(frozen=True, slots=True)
class RecentChat:
    chat_id: int
    last_message: Optional[str]
    name: str
    avatar_uri: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One point returned by a vector search, most similar first."""

    id: int
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RecalledMessage:
    message: Message
    chat_id: int
    score: float
