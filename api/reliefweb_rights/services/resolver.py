from __future__ import annotations

import logging
from collections.abc import Sequence

from opentelemetry import trace

from reliefweb_rights.services.documents import Account, HasSourceReferences, Ownable, document_owner_id, document_source_ids
from reliefweb_rights.services.posting_rights import (
    AuthorRight,
    ConsolidatedRight,
    PostingRight,
    bucket_source_ids,
    consolidate_author_right,
    consolidate_right,
    content_kind_supports_posting_rights,
    unique_source_ids,
)
from reliefweb_rights.services.rights_lookup import RightsLookup

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PostingRightsResolver:
    def __init__(self, lookup: RightsLookup) -> None:
        self.lookup = lookup

    async def resolve(self, account: Account, content_kind: str, source_ids: Sequence[int]) -> ConsolidatedRight:
        """Consolidate the account's rights for a document posted under ``source_ids``.

        Precedence: blocked for any source, then unverified for any source,
        then trusted for every source, otherwise allowed.
        """
        if account.is_anonymous or not content_kind_supports_posting_rights(content_kind) or not source_ids:
            return ConsolidatedRight.of(PostingRight.UNVERIFIED, list(source_ids))

        sources = unique_source_ids(source_ids)

        with tracer.start_as_current_span("posting_rights.resolve") as span:
            span.set_attribute("posting_rights.content_kind", content_kind)
            span.set_attribute("posting_rights.source_count", len(sources))

            rights = await self.lookup.get_rights(account, sources)
            result = consolidate_right(bucket_source_ids(rights, content_kind, sources), sources)

            span.set_attribute("posting_rights.result", result.name)
            logger.debug(
                "posting right resolved user_id=%s kind=%s sources=%s right=%s",
                account.id,
                content_kind,
                sources,
                result.name,
            )
            return result

    async def get_author_right(self, document: object) -> AuthorRight:
        """Consolidated right of the document owner for the document sources.

        The owner's user record wins, then the record for the owner's email
        domain, then the privileged domain default. Sources that do not accept
        the document's content kind are skipped.
        """
        content_kind = getattr(document, "content_kind", None)
        if (
            not isinstance(document, Ownable)
            or not isinstance(document, HasSourceReferences)
            or not isinstance(content_kind, str)
            or not content_kind_supports_posting_rights(content_kind)
        ):
            return "unknown"

        sources = unique_source_ids(document_source_ids(document))
        owner = Account(id=document_owner_id(document))
        rights = await self.lookup.get_rights(owner, sources)
        allowed = await self.lookup.get_allowed_content_types(sources)
        counted = [
            rights[source_id].right_for(content_kind) for source_id in sources if content_kind in allowed[source_id]
        ]
        return consolidate_author_right(counted, total=len(sources))
