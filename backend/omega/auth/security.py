"""
Fonctions utilitaires de sécurité pour l'authentification.

Les jetons de session sont des JWT signés (HS256) émis par le fournisseur
d'identité; ce module les crée (tests, outils internes) et les décode.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import JWTError, jwt

from omega.config import settings

logger = logging.getLogger(__name__)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Crée un token JWT avec les données fournies et une expiration."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Décode un token JWT et retourne ses claims, ou None si invalide/expiré/sans 'sub'."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"Erreur de décodage JWT: {e}")
        return None
    if not payload.get("sub"):
        logger.warning("Token JWT décodé mais sans champ 'sub'.")
        return None
    return payload

def is_admin_payload(payload: Dict[str, Any]) -> bool:
    """Le rôle admin est porté soit par 'role', soit par 'app_metadata.role'."""
    app_metadata = payload.get("app_metadata") or {}
    return settings.ADMIN_ROLE in (payload.get("role"), app_metadata.get("role"))
