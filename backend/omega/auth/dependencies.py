import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from omega.auth.models import CurrentUser
from omega.auth.security import decode_access_token, is_admin_payload

logger = logging.getLogger(__name__)

# Les jetons sont émis par le fournisseur d'identité, pas par cette API
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Non autorisé: jeton de session absent ou invalide.",
    headers={"WWW-Authenticate": "Bearer"},
)

async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)]
) -> CurrentUser:
    """Dépendance pour obtenir l'utilisateur à partir du token Bearer."""
    if not token:
        raise CREDENTIALS_EXCEPTION
    payload = decode_access_token(token)
    if payload is None:
        raise CREDENTIALS_EXCEPTION
    return CurrentUser(
        id=str(payload["sub"]),
        email=payload.get("email"),
        is_admin=is_admin_payload(payload),
    )

async def get_current_admin_user(
    current_user: Annotated[CurrentUser, Depends(get_current_user)]
) -> CurrentUser:
    """Dépendance pour obtenir un utilisateur admin."""
    if not current_user.is_admin:
        logger.warning(f"Accès admin refusé pour l'utilisateur {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Opération non permise. Droits administrateur requis."
        )
    return current_user

CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
AdminUserDep = Annotated[CurrentUser, Depends(get_current_admin_user)]
