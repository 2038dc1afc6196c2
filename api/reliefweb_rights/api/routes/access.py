from fastapi import APIRouter, Depends, HTTPException, status

from reliefweb_rights.api.deps import get_access_decision, get_resolver
from reliefweb_rights.core.auth import READ_SCOPE
from reliefweb_rights.core.security import get_client_principal
from reliefweb_rights.schemas.posting_rights import (
    AuthorRightOut,
    AuthorRightRequest,
    DocumentIn,
    EditAccessOut,
    EditAccessRequest,
)
from reliefweb_rights.services.access import AccessDecision
from reliefweb_rights.services.documents import Account, Document, UnownedDocument
from reliefweb_rights.services.repository import RepositoryUnavailableError
from reliefweb_rights.services.resolver import PostingRightsResolver

router = APIRouter()


def to_document(payload: DocumentIn) -> Document | UnownedDocument:
    if payload.owner_id is None:
        return UnownedDocument(
            id=payload.id,
            content_kind=payload.content_kind,
            source_ids=list(payload.source_ids),
            moderation_status=payload.moderation_status,
        )
    return Document(
        id=payload.id,
        content_kind=payload.content_kind,
        owner_id=payload.owner_id,
        source_ids=list(payload.source_ids),
        moderation_status=payload.moderation_status,
    )


@router.post("/edit", response_model=EditAccessOut)
async def check_edit_access(
    payload: EditAccessRequest,
    principal=Depends(get_client_principal),
    access: AccessDecision = Depends(get_access_decision),
) -> EditAccessOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    document = to_document(payload.document)
    moderation_status = payload.status or payload.document.moderation_status
    try:
        can_edit = await access.can_edit(Account(id=payload.user_id), document, moderation_status)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return EditAccessOut(user_id=payload.user_id, document_id=payload.document.id, can_edit=can_edit)


@router.post("/author-right", response_model=AuthorRightOut)
async def get_author_right(
    payload: AuthorRightRequest,
    principal=Depends(get_client_principal),
    resolver: PostingRightsResolver = Depends(get_resolver),
) -> AuthorRightOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        right = await resolver.get_author_right(to_document(payload.document))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return AuthorRightOut(
        document_id=payload.document.id,
        owner_id=payload.document.owner_id,
        right=right,
    )
