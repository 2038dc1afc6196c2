from __future__ import annotations

import os
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from reliefweb_rights.services.posting_rights import CONTENT_KINDS, SourceRights
from reliefweb_rights.services.repository import (
    ClientCredentialRecord,
    PostgresRepository,
    RepositoryUnavailableError,
)

os.environ.setdefault("RW_OTEL_ENABLED", "false")


class FakeRightsRepository:
    """In-memory stand-in for PostgresRepository."""

    def __init__(
        self,
        *,
        user_rights: Mapping[int, Sequence[SourceRights]] | None = None,
        domain_rights: Mapping[str, Sequence[SourceRights]] | None = None,
        emails: Mapping[int, str] | None = None,
        shortnames: Mapping[int, str] | None = None,
        status_mapping: dict[str, dict[str, dict[str, str]]] | None = None,
        credentials: Sequence[ClientCredentialRecord] = (),
        allowed_content_types: Mapping[int, Sequence[str]] | None = None,
    ) -> None:
        self.user_rights = {
            user_id: {entry.source_id: entry for entry in entries} for user_id, entries in (user_rights or {}).items()
        }
        self.domain_rights = {
            domain: {entry.source_id: entry for entry in entries} for domain, entries in (domain_rights or {}).items()
        }
        self.emails = dict(emails or {})
        self.shortnames = dict(shortnames or {})
        self.status_mapping = status_mapping or {}
        self.credentials = list(credentials)
        # None means every source accepts every content kind.
        self.allowed_content_types = allowed_content_types
        self.available = True
        self.calls: Counter[str] = Counter()
        self.mapping_actor: str | None = None

    def _check_available(self) -> None:
        if not self.available:
            raise RepositoryUnavailableError("database unavailable")

    async def close(self) -> None:
        return None

    async def ping(self) -> None:
        self._check_available()

    async def get_client_credentials(self, client_id: str) -> list[ClientCredentialRecord]:
        self._check_available()
        return [record for record in self.credentials if record.client_id == client_id]

    async def fetch_user_posting_rights(self, user_id: int, source_ids: Sequence[int]) -> dict[int, SourceRights]:
        self.calls["fetch_user_posting_rights"] += 1
        self._check_available()
        return self._select(self.user_rights.get(user_id, {}), source_ids)

    async def fetch_domain_posting_rights(self, domain: str, source_ids: Sequence[int]) -> dict[int, SourceRights]:
        self.calls["fetch_domain_posting_rights"] += 1
        self._check_available()
        return self._select(self.domain_rights.get(domain, {}), source_ids)

    async def get_user_email(self, user_id: int) -> str | None:
        self.calls["get_user_email"] += 1
        self._check_available()
        return self.emails.get(user_id)

    async def get_allowed_content_types(self, source_ids: Sequence[int]) -> dict[int, frozenset[str]]:
        self.calls["get_allowed_content_types"] += 1
        self._check_available()
        if self.allowed_content_types is None:
            return {source_id: frozenset(("job", "report", "training")) for source_id in source_ids}
        return {
            source_id: frozenset(self.allowed_content_types[source_id])
            for source_id in source_ids
            if source_id in self.allowed_content_types
        }

    async def get_source_shortnames(self, source_ids: Sequence[int]) -> dict[int, str]:
        return {source_id: self.shortnames[source_id] for source_id in source_ids if source_id in self.shortnames}

    async def list_sources_with_user_posting_rights(
        self,
        *,
        user_id: int,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]:
        self.calls["list_sources_with_user_posting_rights"] += 1
        return self._filter(self.user_rights.get(user_id, {}), filters, operator, limit)

    async def list_sources_with_domain_posting_rights(
        self,
        *,
        domain: str,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]:
        self.calls["list_sources_with_domain_posting_rights"] += 1
        return self._filter(self.domain_rights.get(domain, {}), filters, operator, limit)

    async def get_status_mapping(self) -> dict[str, dict[str, dict[str, str]]]:
        self._check_available()
        return self.status_mapping

    async def replace_status_mapping(self, *, mapping: Any, actor_id: str | None = None) -> dict[str, Any]:
        self._check_available()
        repository = PostgresRepository(database_url=None, min_pool_size=1, max_pool_size=1)
        normalized = repository._validate_status_mapping(mapping)
        self.status_mapping = normalized
        self.mapping_actor = actor_id
        return normalized

    @staticmethod
    def _select(entries: Mapping[int, SourceRights], source_ids: Sequence[int]) -> dict[int, SourceRights]:
        if not source_ids:
            return dict(sorted(entries.items()))
        return {source_id: entries[source_id] for source_id in sorted(source_ids) if source_id in entries}

    @staticmethod
    def _filter(
        entries: Mapping[int, SourceRights],
        filters: Mapping[str, Sequence[int]] | None,
        operator: str,
        limit: int | None,
    ) -> dict[int, SourceRights]:
        # Reuse the SQL builder for its validation only.
        PostgresRepository._build_rights_filter_clause(filters, operator, first_param=3)
        checks = [
            (content_kind, set(codes))
            for content_kind, codes in (filters or {}).items()
            if content_kind in CONTENT_KINDS and codes
        ]
        combine = all if operator.strip().upper() == "AND" else any

        selected: dict[int, SourceRights] = {}
        for source_id, entry in sorted(entries.items()):
            if checks and not combine(int(entry.right_for(kind)) in codes for kind, codes in checks):
                continue
            selected[source_id] = entry
            if limit is not None and len(selected) >= limit:
                break
        return selected


@pytest.fixture
def make_repository():
    return FakeRightsRepository
