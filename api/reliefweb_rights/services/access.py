from __future__ import annotations

import logging

from opentelemetry import trace

from reliefweb_rights.services.documents import Account, document_owner_id, document_source_ids
from reliefweb_rights.services.posting_rights import PostingRight, content_kind_supports_posting_rights
from reliefweb_rights.services.rights_lookup import RightsLookup

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AccessDecision:
    def __init__(self, lookup: RightsLookup) -> None:
        self.lookup = lookup

    async def can_edit(self, account: Account, document: object, status: str) -> bool:
        """Whether the account may edit the document in the given moderation status.

        Being allowed or trusted for any one source of a joint document is
        enough, unless the account is blocked for another of its sources. A
        blocked owner keeps access to their own drafts only.
        """
        if account.is_anonymous or getattr(document, "id", None) is None:
            return False

        owner_id = document_owner_id(document)
        owner = owner_id is not None and owner_id == account.id and (account.id or 0) > 0

        content_kind = getattr(document, "content_kind", None)
        sources = document_source_ids(document)
        if not isinstance(content_kind, str) or not content_kind_supports_posting_rights(content_kind) or not sources:
            return owner

        with tracer.start_as_current_span("posting_rights.can_edit") as span:
            span.set_attribute("posting_rights.content_kind", content_kind)
            span.set_attribute("posting_rights.source_count", len(sources))

            allowed = False
            rights = await self.lookup.get_rights(account, sources, check_privileged_domains=False)
            for source_id in sources:
                right = rights[source_id].right_for(content_kind)
                if right == PostingRight.BLOCKED:
                    logger.info(
                        "edit access restricted for blocked user user_id=%s document_id=%s source_id=%s status=%s",
                        account.id,
                        getattr(document, "id", None),
                        source_id,
                        status,
                    )
                    return owner and status == "draft"
                if right > PostingRight.BLOCKED:
                    allowed = True

            span.set_attribute("posting_rights.allowed", allowed)
            return allowed or owner
