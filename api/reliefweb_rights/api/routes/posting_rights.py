from fastapi import APIRouter, Depends, HTTPException, Query, status

from reliefweb_rights.api.deps import get_resolver, get_rights_lookup
from reliefweb_rights.core.auth import READ_SCOPE
from reliefweb_rights.core.security import get_client_principal
from reliefweb_rights.schemas.posting_rights import (
    AllowedOrTrustedOut,
    ConsolidatedRightOut,
    FilterOperator,
    SourceRightsOut,
    UserRightsOut,
)
from reliefweb_rights.services.documents import Account
from reliefweb_rights.services.repository import RepositoryUnavailableError, RepositoryValidationError
from reliefweb_rights.services.resolver import PostingRightsResolver
from reliefweb_rights.services.rights_lookup import RightsLookup

router = APIRouter()


@router.get("/users/{user_id}", response_model=UserRightsOut)
async def get_user_posting_rights(
    user_id: int,
    sources: list[int] = Query(default=[], alias="source"),
    principal=Depends(get_client_principal),
    lookup: RightsLookup = Depends(get_rights_lookup),
) -> UserRightsOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        rights = await lookup.get_rights(Account(id=user_id), sources)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserRightsOut(
        user_id=user_id,
        rights=[SourceRightsOut(**rights[source_id].as_dict()) for source_id in sorted(rights)],
    )


@router.get("/users/{user_id}/consolidated", response_model=ConsolidatedRightOut)
async def get_consolidated_posting_right(
    user_id: int,
    kind: str = Query(min_length=1),
    sources: list[int] = Query(default=[], alias="source"),
    principal=Depends(get_client_principal),
    resolver: PostingRightsResolver = Depends(get_resolver),
) -> ConsolidatedRightOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        result = await resolver.resolve(Account(id=user_id), kind, sources)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return ConsolidatedRightOut(**result.as_dict())


@router.get("/users/{user_id}/sources", response_model=UserRightsOut)
async def list_sources_with_posting_rights(
    user_id: int,
    job: list[int] = Query(default=[]),
    training: list[int] = Query(default=[]),
    operator: FilterOperator = Query(default="AND"),
    limit: int | None = Query(default=None, ge=1, le=1000),
    principal=Depends(get_client_principal),
    lookup: RightsLookup = Depends(get_rights_lookup),
) -> UserRightsOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    filters = {content_kind: codes for content_kind, codes in (("job", job), ("training", training)) if codes}
    try:
        rights = await lookup.list_sources_with_posting_rights(
            Account(id=user_id),
            filters,
            operator=operator,
            limit=limit,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserRightsOut(
        user_id=user_id,
        rights=[SourceRightsOut(**rights[source_id].as_dict()) for source_id in sorted(rights)],
    )


@router.get("/users/{user_id}/allowed-or-trusted", response_model=AllowedOrTrustedOut)
async def get_allowed_or_trusted(
    user_id: int,
    kind: str = Query(default="job"),
    principal=Depends(get_client_principal),
    lookup: RightsLookup = Depends(get_rights_lookup),
) -> AllowedOrTrustedOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        allowed_or_trusted = await lookup.is_user_allowed_or_trusted_for_any_source(Account(id=user_id), kind)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return AllowedOrTrustedOut(user_id=user_id, content_kind=kind, allowed_or_trusted=allowed_or_trusted)
