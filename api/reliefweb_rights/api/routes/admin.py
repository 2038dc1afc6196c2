from fastapi import APIRouter, Depends, HTTPException, status

from reliefweb_rights.core.auth import ADMIN_SCOPE
from reliefweb_rights.core.security import get_client_principal
from reliefweb_rights.schemas.posting_rights import StatusMappingOut, StatusMappingUpdateRequest
from reliefweb_rights.services.repository import (
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.get("/status-mapping", response_model=StatusMappingOut)
async def get_status_mapping(
    principal=Depends(get_client_principal),
    repository=Depends(get_repository),
) -> StatusMappingOut:
    try:
        principal.require_scopes({ADMIN_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        mapping = await repository.get_status_mapping()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return StatusMappingOut(mapping=mapping)


@router.put("/status-mapping", response_model=StatusMappingOut)
async def put_status_mapping(
    payload: StatusMappingUpdateRequest,
    principal=Depends(get_client_principal),
    repository=Depends(get_repository),
) -> StatusMappingOut:
    try:
        principal.require_scopes({ADMIN_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        mapping = await repository.replace_status_mapping(mapping=payload.mapping, actor_id=principal.actor_id)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return StatusMappingOut(mapping=mapping)
