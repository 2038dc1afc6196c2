from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from reliefweb_rights.core.config import get_settings
from reliefweb_rights.services.posting_rights import CONTENT_KINDS, SCENARIOS, PostingRight, SourceRights

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


@dataclass(slots=True)
class ClientCredentialRecord:
    client_db_id: str
    client_id: str
    scopes: list[str]
    key_hash: str


RIGHTS_FILTER_OPERATORS = {"AND", "OR"}
RIGHT_CODES = frozenset(int(right) for right in PostingRight)

StatusMapping = dict[str, dict[str, dict[str, str]]]


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        try:
            await pool.fetchval("select 1")
        except (asyncpg.PostgresError, OSError) as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    async def get_client_credentials(self, client_id: str) -> list[ClientCredentialRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              c.id::text as client_db_id,
              c.client_id,
              c.scopes,
              cc.key_hash
            from api_clients c
            join api_client_credentials cc on cc.client_id = c.id
            where c.client_id = $1
              and c.enabled = true
              and cc.is_active = true
              and cc.revoked_at is null
              and (cc.expires_at is null or cc.expires_at > now())
            """,
            client_id,
        )
        return [
            ClientCredentialRecord(
                client_db_id=row["client_db_id"],
                client_id=row["client_id"],
                scopes=list(row["scopes"] or []),
                key_hash=row["key_hash"],
            )
            for row in rows
        ]

    async def fetch_user_posting_rights(self, user_id: int, source_ids: Sequence[int]) -> dict[int, SourceRights]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              r.source_id,
              r.job,
              r.training
            from user_posting_rights r
            where r.user_id = $1
              and (cardinality($2::bigint[]) = 0 or r.source_id = any($2::bigint[]))
            order by r.source_id asc
            """,
            user_id,
            list(source_ids),
        )
        return {row["source_id"]: self._rights_row_to_source_rights(row) for row in rows}

    async def fetch_domain_posting_rights(self, domain: str, source_ids: Sequence[int]) -> dict[int, SourceRights]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              r.source_id,
              r.job,
              r.training
            from domain_posting_rights r
            where r.domain = $1
              and (cardinality($2::bigint[]) = 0 or r.source_id = any($2::bigint[]))
            order by r.source_id asc
            """,
            domain,
            list(source_ids),
        )
        return {row["source_id"]: self._rights_row_to_source_rights(row) for row in rows}

    async def get_user_email(self, user_id: int) -> str | None:
        pool = await self._get_pool()
        row = await pool.fetchrow("select email from users where id = $1", user_id)
        if not row:
            return None
        return self._coerce_text(row["email"])

    async def get_allowed_content_types(self, source_ids: Sequence[int]) -> dict[int, frozenset[str]]:
        if not source_ids:
            return {}
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select source_id, content_kind
            from source_allowed_content_types
            where source_id = any($1::bigint[])
            """,
            list(source_ids),
        )
        allowed: dict[int, set[str]] = {}
        for row in rows:
            allowed.setdefault(row["source_id"], set()).add(row["content_kind"])
        return {source_id: frozenset(kinds) for source_id, kinds in allowed.items()}

    async def get_source_shortnames(self, source_ids: Sequence[int]) -> dict[int, str]:
        if not source_ids:
            return {}
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select id, coalesce(nullif(shortname, ''), name) as shortname
            from sources
            where id = any($1::bigint[])
            """,
            list(source_ids),
        )
        return {row["id"]: row["shortname"] for row in rows}

    async def list_sources_with_user_posting_rights(
        self,
        *,
        user_id: int,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]:
        clause, params = self._build_rights_filter_clause(filters, operator, first_param=3)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              r.source_id,
              r.job,
              r.training
            from user_posting_rights r
            where r.user_id = $1
              {f"and {clause}" if clause else ""}
            order by r.source_id asc
            limit $2
            """,
            user_id,
            limit,
            *params,
        )
        return {row["source_id"]: self._rights_row_to_source_rights(row) for row in rows}

    async def list_sources_with_domain_posting_rights(
        self,
        *,
        domain: str,
        filters: Mapping[str, Sequence[int]] | None,
        operator: str = "AND",
        limit: int | None = None,
    ) -> dict[int, SourceRights]:
        clause, params = self._build_rights_filter_clause(filters, operator, first_param=3)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              r.source_id,
              r.job,
              r.training
            from domain_posting_rights r
            where r.domain = $1
              {f"and {clause}" if clause else ""}
            order by r.source_id asc
            limit $2
            """,
            domain,
            limit,
            *params,
        )
        return {row["source_id"]: self._rights_row_to_source_rights(row) for row in rows}

    async def get_status_mapping(self) -> StatusMapping:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select role, content_kind, scenario, status
            from posting_rights_status_mapping
            order by role asc, content_kind asc, scenario asc
            """
        )
        mapping: StatusMapping = {}
        for row in rows:
            mapping.setdefault(row["role"], {}).setdefault(row["content_kind"], {})[row["scenario"]] = row["status"]
        return mapping

    async def replace_status_mapping(self, *, mapping: Any, actor_id: str | None = None) -> StatusMapping:
        normalized = self._validate_status_mapping(mapping)
        records = [
            (role, content_kind, scenario, status, actor_id)
            for role, kinds in normalized.items()
            for content_kind, scenarios in kinds.items()
            for scenario, status in scenarios.items()
        ]

        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("delete from posting_rights_status_mapping")
                if records:
                    await conn.executemany(
                        """
                        insert into posting_rights_status_mapping (
                          role,
                          content_kind,
                          scenario,
                          status,
                          updated_by
                        )
                        values ($1, $2, $3, $4, $5)
                        """,
                        records,
                    )
        logger.info("status mapping replaced entries=%s actor=%s", len(records), actor_id)
        return normalized

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("RW_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _rights_row_to_source_rights(row: Mapping[str, Any]) -> SourceRights:
        return SourceRights(
            source_id=int(row["source_id"]),
            job=PostingRight.from_code(row["job"]),
            training=PostingRight.from_code(row["training"]),
        )

    @staticmethod
    def _build_rights_filter_clause(
        filters: Mapping[str, Sequence[int]] | None,
        operator: str,
        *,
        first_param: int,
    ) -> tuple[str, list[list[int]]]:
        normalized_operator = operator.strip().upper() if isinstance(operator, str) else ""
        if normalized_operator not in RIGHTS_FILTER_OPERATORS:
            raise RepositoryValidationError("operator must be one of: AND, OR")

        filters = filters or {}
        unknown_kinds = sorted(set(filters) - set(CONTENT_KINDS))
        if unknown_kinds:
            raise RepositoryValidationError(f"unsupported content kinds: {', '.join(unknown_kinds)}")

        conditions: list[str] = []
        params: list[list[int]] = []
        for content_kind in CONTENT_KINDS:
            codes = filters.get(content_kind)
            if not codes:
                continue
            normalized_codes: list[int] = []
            for code in codes:
                if isinstance(code, bool) or not isinstance(code, int) or code not in RIGHT_CODES:
                    raise RepositoryValidationError(f"invalid posting right code for {content_kind}: {code!r}")
                if code not in normalized_codes:
                    normalized_codes.append(code)
            params.append(normalized_codes)
            conditions.append(f"r.{content_kind} = any(${first_param + len(params) - 1}::smallint[])")

        if not conditions:
            return "", []
        return "(" + f" {normalized_operator.lower()} ".join(conditions) + ")", params

    def _validate_status_mapping(self, mapping: Any) -> StatusMapping:
        if not isinstance(mapping, Mapping):
            raise RepositoryValidationError("status mapping must be an object keyed by role")

        normalized: StatusMapping = {}
        for role, kinds in mapping.items():
            normalized_role = self._coerce_text(role)
            if not normalized_role:
                raise RepositoryValidationError("status mapping roles must be non-empty strings")
            if not isinstance(kinds, Mapping):
                raise RepositoryValidationError(f"status mapping for role {normalized_role} must be an object")
            for content_kind, scenarios in kinds.items():
                if content_kind not in CONTENT_KINDS:
                    raise RepositoryValidationError(f"unsupported content kind: {content_kind}")
                if not isinstance(scenarios, Mapping):
                    raise RepositoryValidationError(
                        f"status mapping for {normalized_role}/{content_kind} must be an object"
                    )
                for scenario, status in scenarios.items():
                    if scenario not in SCENARIOS:
                        raise RepositoryValidationError(f"unsupported scenario: {scenario}")
                    normalized_status = self._coerce_text(status)
                    if not normalized_status:
                        raise RepositoryValidationError(
                            f"status for {normalized_role}/{content_kind}/{scenario} must be a non-empty string"
                        )
                    normalized.setdefault(normalized_role, {}).setdefault(content_kind, {})[scenario] = normalized_status
        return normalized

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
