from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from reliefweb_rights.services.documents import Account, document_source_ids
from reliefweb_rights.services.posting_rights import (
    PostingRight,
    Scenario,
    bucket_source_ids,
    classify_scenario,
    content_kind_supports_posting_rights,
    unique_source_ids,
)
from reliefweb_rights.services.rights_lookup import RightsLookup

logger = logging.getLogger(__name__)

_MESSAGE_LABELS: tuple[tuple[PostingRight, str], ...] = (
    (PostingRight.BLOCKED, "Blocked"),
    (PostingRight.UNVERIFIED, "Unverified"),
    (PostingRight.ALLOWED, "Allowed"),
    (PostingRight.TRUSTED, "Trusted"),
)


class StatusMappingStore(Protocol):
    async def get_status_mapping(self) -> dict[str, dict[str, dict[str, str]]]: ...

    async def get_source_shortnames(self, source_ids: Sequence[int]) -> dict[int, str]: ...


@dataclass(slots=True)
class StatusUpdate:
    previous_status: str
    status: str
    scenario: Scenario
    message: str


class ModerationStatusUpdater:
    """Pick the moderation status of a submitted document from the submitter's rights."""

    def __init__(self, lookup: RightsLookup, store: StatusMappingStore) -> None:
        self.lookup = lookup
        self.store = store

    async def update(
        self,
        document: object,
        account: Account,
        role: str,
        statuses: Sequence[str] = ("pending",),
    ) -> StatusUpdate | None:
        if account.is_anonymous:
            return None

        status = getattr(document, "moderation_status", None)
        if status not in statuses:
            return None

        content_kind = getattr(document, "content_kind", None)
        if not isinstance(content_kind, str) or not content_kind_supports_posting_rights(content_kind):
            return None

        mapping = await self.store.get_status_mapping()
        kind_mapping = mapping.get(role, {}).get(content_kind)
        if not kind_mapping:
            return None

        sources = unique_source_ids(document_source_ids(document))
        if not sources:
            return None

        rights = await self.lookup.get_rights(account, sources)
        buckets = bucket_source_ids(rights, content_kind, sources)
        scenario = classify_scenario(buckets, len(sources))

        # A privileged domain defaulting to "allowed" is indistinguishable from
        # explicit allowed records, so it gets its own scenario.
        if scenario == "allowed_all" and await self._is_privileged_allowed(account, content_kind):
            scenario = "privileged_all"

        new_status = kind_mapping.get(scenario)
        if not new_status:
            return None

        message = await self._build_message(buckets)
        if hasattr(document, "moderation_status"):
            document.moderation_status = new_status

        logger.info(
            "moderation status updated from posting rights user_id=%s document_id=%s scenario=%s status=%s->%s",
            account.id,
            getattr(document, "id", None),
            scenario,
            status,
            new_status,
        )
        return StatusUpdate(previous_status=status, status=new_status, scenario=scenario, message=message)

    async def _is_privileged_allowed(self, account: Account, content_kind: str) -> bool:
        domain = await self.lookup.get_account_domain(account)
        if not self.lookup.policy.is_privileged(domain):
            return False
        return self.lookup.policy.default_right(content_kind) == PostingRight.ALLOWED

    async def _build_message(self, buckets: Mapping[PostingRight, list[int]]) -> str:
        source_ids = [source_id for right, _ in _MESSAGE_LABELS for source_id in buckets[right]]
        shortnames = await self.store.get_source_shortnames(source_ids)

        parts: list[str] = []
        for right, label in _MESSAGE_LABELS:
            if not buckets[right]:
                continue
            names = ", ".join(shortnames.get(source_id, str(source_id)) for source_id in buckets[right])
            parts.append(f"{label} user for {names}.")
        return " ".join(parts)
