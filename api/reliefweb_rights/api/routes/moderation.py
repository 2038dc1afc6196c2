from fastapi import APIRouter, Depends, HTTPException, status

from reliefweb_rights.api.deps import get_status_updater
from reliefweb_rights.api.routes.access import to_document
from reliefweb_rights.core.auth import READ_SCOPE
from reliefweb_rights.core.security import get_client_principal
from reliefweb_rights.schemas.posting_rights import StatusFromRightsOut, StatusFromRightsRequest
from reliefweb_rights.services.documents import Account
from reliefweb_rights.services.moderation import ModerationStatusUpdater
from reliefweb_rights.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.post("/status-from-posting-rights", response_model=StatusFromRightsOut)
async def status_from_posting_rights(
    payload: StatusFromRightsRequest,
    principal=Depends(get_client_principal),
    updater: ModerationStatusUpdater = Depends(get_status_updater),
) -> StatusFromRightsOut:
    try:
        principal.require_scopes({READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    current_status = payload.document.moderation_status
    try:
        update = await updater.update(
            to_document(payload.document),
            Account(id=payload.user_id),
            payload.role,
            statuses=payload.statuses,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    if update is None:
        return StatusFromRightsOut(updated=False, status=current_status, previous_status=current_status)
    return StatusFromRightsOut(
        updated=True,
        status=update.status,
        previous_status=update.previous_status,
        scenario=update.scenario,
        message=update.message,
    )
