from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from reliefweb_rights.services.documents import Account
from reliefweb_rights.services.posting_rights import (
    CONTENT_KINDS,
    PostingRight,
    PrivilegedDomainPolicy,
    SourceRights,
    extract_domain_from_email,
)

logger = logging.getLogger(__name__)

CacheKey = tuple[int, tuple[int, ...], bool]


class RightsStore(Protocol):
    async def fetch_user_posting_rights(self, user_id: int, source_ids: Sequence[int]) -> dict[int, SourceRights]: ...

    async def fetch_domain_posting_rights(self, domain: str, source_ids: Sequence[int]) -> dict[int, SourceRights]: ...

    async def get_user_email(self, user_id: int) -> str | None: ...

    async def get_allowed_content_types(self, source_ids: Sequence[int]) -> dict[int, frozenset[str]]: ...

    async def list_sources_with_user_posting_rights(
        self,
        *,
        user_id: int,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]: ...

    async def list_sources_with_domain_posting_rights(
        self,
        *,
        domain: str,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]: ...


class RightsCache:
    """Memoized rights for one logical request."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, dict[int, SourceRights]] = {}
        self.emails: dict[int, str | None] = {}
        self.allowed_content_types: dict[int, frozenset[str]] = {}

    @staticmethod
    def key(user_id: int, source_ids: Sequence[int], check_privileged_domains: bool) -> CacheKey:
        return (user_id, tuple(sorted(set(source_ids))), check_privileged_domains)

    def get(self, key: CacheKey) -> dict[int, SourceRights] | None:
        entry = self._entries.get(key)
        return dict(entry) if entry is not None else None

    def set(self, key: CacheKey, rights: Mapping[int, SourceRights]) -> None:
        self._entries[key] = dict(rights)

    def clear(self) -> None:
        self._entries.clear()
        self.emails.clear()
        self.allowed_content_types.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RightsLookup:
    def __init__(
        self,
        store: RightsStore,
        *,
        policy: PrivilegedDomainPolicy | None = None,
        cache: RightsCache | None = None,
    ) -> None:
        self.store = store
        self.policy = policy or PrivilegedDomainPolicy()
        self.cache = cache if cache is not None else RightsCache()

    def reset_cache(self) -> None:
        self.cache.clear()

    async def get_rights(
        self,
        account: Account,
        source_ids: Sequence[int],
        *,
        check_privileged_domains: bool = True,
    ) -> dict[int, SourceRights]:
        """Return the account's rights keyed by source id.

        Every requested source is present in the result. Sources without a
        user record fall back to the rights of the user's email domain, then
        to the privileged domain defaults when applicable, then to unverified.
        """
        user_id = account.id or 0
        key = RightsCache.key(user_id, source_ids, check_privileged_domains)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        results: dict[int, SourceRights] = {}
        if not account.is_anonymous:
            results = await self.restrict_to_allowed_content_types(
                await self.store.fetch_user_posting_rights(user_id, list(source_ids))
            )
            missing = [source_id for source_id in source_ids if source_id not in results]
            if not source_ids or missing:
                domain_rights = await self.get_domain_rights(
                    account,
                    missing,
                    check_privileged_domains=check_privileged_domains,
                )
                for source_id, rights in domain_rights.items():
                    results.setdefault(source_id, rights)

        defaults = await self._default_rights(account, check_privileged_domains=check_privileged_domains)
        for source_id in source_ids:
            if source_id not in results:
                results[source_id] = SourceRights.default(source_id, defaults)

        self.cache.set(key, results)
        logger.debug(
            "posting rights loaded user_id=%s sources=%s entries=%s",
            user_id,
            len(source_ids),
            len(results),
        )
        return dict(results)

    async def get_domain_rights(
        self,
        account: Account,
        source_ids: Sequence[int],
        *,
        check_privileged_domains: bool = True,
    ) -> dict[int, SourceRights]:
        if account.is_anonymous:
            return {}

        domain = await self.get_account_domain(account)
        if not domain:
            return {}

        results = dict(await self.store.fetch_domain_posting_rights(domain, list(source_ids)))
        privileged = check_privileged_domains and self.policy.is_privileged(domain)
        defaults = self.policy.default_rights if privileged else None

        for source_id in source_ids:
            if source_id not in results:
                results[source_id] = SourceRights.default(source_id, defaults)
        return await self.restrict_to_allowed_content_types(results)

    async def list_sources_with_posting_rights(
        self,
        account: Account,
        filters: Mapping[str, Sequence[int]] | None = None,
        *,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]:
        """Sources for which the account holds rights matching ``filters``.

        ``filters`` maps a content kind to the accepted right codes, the
        per-kind conditions being combined with ``operator``. Records for the
        user take precedence over records for the user's email domain.
        """
        if account.is_anonymous or account.id is None:
            return {}

        results = await self.restrict_to_allowed_content_types(
            await self.store.list_sources_with_user_posting_rights(
                user_id=account.id,
                filters=filters,
                operator=operator,
                limit=limit,
            )
        )
        domain = await self.get_account_domain(account)
        if domain:
            domain_results = await self.store.list_sources_with_domain_posting_rights(
                domain=domain,
                filters=filters,
                operator=operator,
                limit=limit,
            )
            for source_id, rights in (await self.restrict_to_allowed_content_types(domain_results)).items():
                results.setdefault(source_id, rights)
        return results

    async def is_user_allowed_or_trusted_for_any_source(self, account: Account, content_kind: str = "job") -> bool:
        if account.is_anonymous:
            return False
        if content_kind not in CONTENT_KINDS:
            raise ValueError(f"invalid content kind: {content_kind}; must be one of: {', '.join(CONTENT_KINDS)}")

        sources = await self.list_sources_with_posting_rights(
            account,
            {content_kind: [int(PostingRight.ALLOWED), int(PostingRight.TRUSTED)]},
        )
        # Rights for kinds a source does not accept are reset by the listing.
        return any(entry.right_for(content_kind) >= PostingRight.ALLOWED for entry in sources.values())

    async def get_allowed_content_types(self, source_ids: Sequence[int]) -> dict[int, frozenset[str]]:
        known = self.cache.allowed_content_types
        missing = [source_id for source_id in dict.fromkeys(source_ids) if source_id not in known]
        if missing:
            fetched = await self.store.get_allowed_content_types(missing)
            for source_id in missing:
                known[source_id] = fetched.get(source_id, frozenset())
        return {source_id: known[source_id] for source_id in source_ids}

    async def restrict_to_allowed_content_types(self, rights: Mapping[int, SourceRights]) -> dict[int, SourceRights]:
        """Reset to unverified the rights for content kinds a source does not accept."""
        if not rights:
            return {}
        allowed = await self.get_allowed_content_types(list(rights))
        return {source_id: entry.restricted_to(allowed[source_id]) for source_id, entry in rights.items()}

    async def get_account_domain(self, account: Account) -> str | None:
        if account.is_anonymous or account.id is None:
            return None
        emails = self.cache.emails
        if account.id not in emails:
            emails[account.id] = await self.store.get_user_email(account.id)
        return extract_domain_from_email(emails[account.id])

    async def _default_rights(
        self,
        account: Account,
        *,
        check_privileged_domains: bool,
    ) -> dict[str, PostingRight]:
        unverified = {content_kind: PostingRight.UNVERIFIED for content_kind in CONTENT_KINDS}
        if account.is_anonymous or not check_privileged_domains or not self.policy.domains:
            return unverified
        domain = await self.get_account_domain(account)
        if self.policy.is_privileged(domain):
            return dict(self.policy.default_rights)
        return unverified
