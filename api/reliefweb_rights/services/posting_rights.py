from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Literal

CONTENT_KINDS: tuple[str, ...] = ("job", "training")

Scenario = Literal[
    "blocked",
    "trusted_all",
    "trusted_some_allowed",
    "trusted_some_unverified",
    "allowed_all",
    "allowed_some_unverified",
    "unverified_all",
    "privileged_all",
]
SCENARIOS: tuple[str, ...] = (
    "blocked",
    "trusted_all",
    "trusted_some_allowed",
    "trusted_some_unverified",
    "allowed_all",
    "allowed_some_unverified",
    "unverified_all",
    "privileged_all",
)

AuthorRight = Literal["unknown", "blocked", "unverified", "allowed", "trusted"]


class PostingRight(IntEnum):
    UNVERIFIED = 0
    BLOCKED = 1
    ALLOWED = 2
    TRUSTED = 3

    @classmethod
    def from_code(cls, value: Any) -> PostingRight:
        """Coerce a stored code (int, numeric string or null) to a right."""
        if value is None or isinstance(value, bool):
            return cls.UNVERIFIED
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNVERIFIED

    @classmethod
    def from_name(cls, value: Any) -> PostingRight:
        if isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is not None:
                return member
        return cls.UNVERIFIED

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(slots=True, frozen=True)
class SourceRights:
    source_id: int
    job: PostingRight = PostingRight.UNVERIFIED
    training: PostingRight = PostingRight.UNVERIFIED

    @classmethod
    def default(cls, source_id: int, defaults: Mapping[str, PostingRight] | None = None) -> SourceRights:
        defaults = defaults or {}
        return cls(
            source_id=source_id,
            job=defaults.get("job", PostingRight.UNVERIFIED),
            training=defaults.get("training", PostingRight.UNVERIFIED),
        )

    def right_for(self, content_kind: str) -> PostingRight:
        if content_kind == "job":
            return self.job
        if content_kind == "training":
            return self.training
        return PostingRight.UNVERIFIED

    def as_dict(self) -> dict[str, int]:
        return {"source_id": self.source_id, "job": int(self.job), "training": int(self.training)}

    def restricted_to(self, content_kinds: Collection[str]) -> SourceRights:
        """Drop rights for content kinds the source does not accept."""
        return SourceRights(
            source_id=self.source_id,
            job=self.job if "job" in content_kinds else PostingRight.UNVERIFIED,
            training=self.training if "training" in content_kinds else PostingRight.UNVERIFIED,
        )


@dataclass(slots=True)
class ConsolidatedRight:
    code: int
    name: str
    sources: list[int] = field(default_factory=list)

    @classmethod
    def of(cls, right: PostingRight, sources: list[int]) -> ConsolidatedRight:
        return cls(code=int(right), name=right.label, sources=list(sources))

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "name": self.name, "sources": list(self.sources)}


@dataclass(slots=True, frozen=True)
class PrivilegedDomainPolicy:
    """Email domains whose users get default rights for sources without records."""

    domains: frozenset[str] = frozenset()
    default_rights: Mapping[str, PostingRight] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        domains: Iterable[str],
        default_rights: Mapping[str, str] | str | None,
    ) -> PrivilegedDomainPolicy:
        normalized_domains = frozenset(domain.strip().lower() for domain in domains if domain and domain.strip())
        if isinstance(default_rights, str):
            raw_rights: Mapping[str, Any] = {kind: default_rights for kind in CONTENT_KINDS}
        elif isinstance(default_rights, Mapping):
            raw_rights = default_rights
        else:
            raw_rights = {}
        return cls(
            domains=normalized_domains,
            default_rights={kind: PostingRight.from_name(raw_rights.get(kind)) for kind in CONTENT_KINDS},
        )

    def is_privileged(self, domain: str | None) -> bool:
        if not domain or not self.domains:
            return False
        return domain.strip().lower() in self.domains

    def default_right(self, content_kind: str) -> PostingRight:
        return self.default_rights.get(content_kind, PostingRight.UNVERIFIED)


def content_kind_supports_posting_rights(content_kind: str) -> bool:
    return content_kind in CONTENT_KINDS


def unique_source_ids(source_ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(source_ids))


def extract_domain_from_email(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    _, domain = email.split("@", 1)
    return domain.strip().lower() or None


def bucket_source_ids(
    rights: Mapping[int, SourceRights],
    content_kind: str,
    source_ids: Iterable[int],
) -> dict[PostingRight, list[int]]:
    buckets: dict[PostingRight, list[int]] = {right: [] for right in PostingRight}
    for source_id in source_ids:
        entry = rights.get(source_id)
        right = entry.right_for(content_kind) if entry is not None else PostingRight.UNVERIFIED
        buckets[right].append(source_id)
    return buckets


def consolidate_right(buckets: Mapping[PostingRight, list[int]], source_ids: list[int]) -> ConsolidatedRight:
    # Blocked is a veto, unverified the conservative default and trusted
    # requires every source to agree.
    if buckets[PostingRight.BLOCKED]:
        return ConsolidatedRight.of(PostingRight.BLOCKED, buckets[PostingRight.BLOCKED])
    if buckets[PostingRight.UNVERIFIED]:
        return ConsolidatedRight.of(PostingRight.UNVERIFIED, buckets[PostingRight.UNVERIFIED])
    if len(buckets[PostingRight.TRUSTED]) == len(source_ids):
        return ConsolidatedRight.of(PostingRight.TRUSTED, source_ids)
    return ConsolidatedRight.of(PostingRight.ALLOWED, source_ids)


def classify_scenario(buckets: Mapping[PostingRight, list[int]], total: int) -> Scenario:
    blocked = buckets[PostingRight.BLOCKED]
    unverified = buckets[PostingRight.UNVERIFIED]
    allowed = buckets[PostingRight.ALLOWED]
    trusted = buckets[PostingRight.TRUSTED]

    if blocked:
        return "blocked"
    if len(trusted) == total:
        return "trusted_all"
    if trusted and not unverified:
        return "trusted_some_allowed"
    if trusted:
        return "trusted_some_unverified"
    if len(allowed) == total:
        return "allowed_all"
    if allowed and unverified:
        return "allowed_some_unverified"
    return "unverified_all"


def consolidate_author_right(rights: list[PostingRight], total: int | None = None) -> AuthorRight:
    # total counts every referenced source, including skipped ones.
    total = len(rights) if total is None else total
    if PostingRight.BLOCKED in rights:
        return "blocked"
    if PostingRight.UNVERIFIED in rights:
        return "unverified"
    if total > 0 and rights.count(PostingRight.TRUSTED) == total:
        return "trusted"
    if PostingRight.ALLOWED in rights:
        return "allowed"
    return "unverified"
