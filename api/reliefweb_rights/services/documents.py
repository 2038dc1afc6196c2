from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(slots=True, frozen=True)
class Account:
    id: int | None = None

    @property
    def is_anonymous(self) -> bool:
        return not self.id


@runtime_checkable
class Ownable(Protocol):
    owner_id: int | None


@runtime_checkable
class HasSourceReferences(Protocol):
    source_ids: list[int]


@dataclass(slots=True)
class Document:
    """Content item as seen by the rights rules.

    Implements both ``Ownable`` and ``HasSourceReferences``. Content without
    an owner is represented by ``UnownedDocument``; any object exposing ``id``
    and ``content_kind`` is accepted by the rules and missing capabilities
    degrade to the safe default.
    """

    id: int | None
    content_kind: str
    owner_id: int | None = None
    source_ids: list[int] = field(default_factory=list)
    moderation_status: str = "draft"


@dataclass(slots=True)
class UnownedDocument:
    id: int | None
    content_kind: str
    source_ids: list[int] = field(default_factory=list)
    moderation_status: str = "draft"


def document_source_ids(document: object) -> list[int]:
    if not isinstance(document, HasSourceReferences):
        return []
    return [source_id for source_id in document.source_ids if source_id]


def document_owner_id(document: object) -> int | None:
    if not isinstance(document, Ownable):
        return None
    return document.owner_id
