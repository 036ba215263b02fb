from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from jose import JWTError, jwt

from marketchat.config import settings
from marketchat.errors import Unauthenticated
from marketchat.models.identity import Identity, Role


def create_access_token(user_id: str, roles: Iterable[Role] = (), expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload: Dict[str, Any] = {
        "sub": user_id,
        "roles": [role.value for role in roles],
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def identity_from_token(token: str) -> Identity:
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise Unauthenticated("Invalid or expired token") from exc
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Token has no subject")
    roles = set()
    for name in payload.get("roles") or []:
        try:
            roles.add(Role(name))
        except ValueError:
            # unknown roles grant nothing
            continue
    return Identity(user_id=str(sub), roles=frozenset(roles))
