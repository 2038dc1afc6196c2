import hashlib
import hmac

from fastapi import Depends, Header, HTTPException, status

from reliefweb_rights.core.auth import Principal
from reliefweb_rights.core.config import Settings, get_settings
from reliefweb_rights.services.repository import RepositoryUnavailableError, get_repository


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


async def get_client_principal(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_client_id: str | None = Header(default=None, alias="X-Client-Id"),
) -> Principal:
    if not x_api_key or not x_client_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"client auth requires {settings.api_key_header} and {settings.client_id_header}",
        )

    try:
        credentials = await repository.get_client_credentials(x_client_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid client credentials")

    key_hash = hash_api_key(x_api_key)
    matched = next((record for record in credentials if hmac.compare_digest(record.key_hash, key_hash)), None)
    if not matched:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid client credentials")

    return Principal(
        subject=matched.client_id,
        scopes=set(matched.scopes),
        actor_id=matched.client_db_id,
    )

