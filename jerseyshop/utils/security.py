"""
Authentification des requêtes API.
- Les jetons sont émis par le service d'auth (hors de ce dépôt): JWT HS256 signé avec JWT_SECRET,
  claims userId, email, isAdmin
- Bearer prioritaire, cookie de session en secours
- require_admin recoupe le claim isAdmin avec la table admin_users
"""
from typing import Any, Dict, Optional
import logging

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from jerseyshop.config import JWT_ALGORITHM, JWT_SECRET
from jerseyshop.infra.database import get_db
from jerseyshop.users.models import AdminUser

logger = logging.getLogger(__name__)

COOKIE_NAME = "session_token"


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Vérifie la signature et l'expiration puis normalise les claims.
    Lève jwt.InvalidTokenError si le jeton est invalide ou incomplet.
    """
    if not JWT_SECRET:
        raise jwt.InvalidTokenError("JWT_SECRET non configuré")
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    user_id = payload.get("userId")
    if user_id is None:
        raise jwt.InvalidTokenError("claim userId manquant")
    return {
        "id": int(user_id),
        "email": payload.get("email") or "",
        "role": "admin" if payload.get("isAdmin") else "user",
        "token": token,
    }


def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    try:
        return decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    except (jwt.InvalidTokenError, ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Jeton invalide")


def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == "admin"


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(
    user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Accès interdit")
    row = db.scalar(select(AdminUser.id).where(AdminUser.user_id == user["id"]))
    if row is None:
        logger.warning("security.require_admin claim isAdmin sans ligne admin_users user_id=%s", user["id"])
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
