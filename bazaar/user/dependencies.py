import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer
from jose import jwt, JWTError

from bazaar.common.custom_exceptions import Forbidden
from bazaar.config.settings import config_settings
from bazaar.schema.full_schema import UserRoleName


class Authentication(HTTPBearer):
    def __init__(self,auto_error=True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request:Request) -> Optional[Dict[str, Any]]:
        auth_creds=await super().__call__(request)
        token=auth_creds.credentials

        decoded_token=self.decode_token(token)

        if not decoded_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,detail="Invalid or expired token provided.")

        return decoded_token

    def decode_token(self,token:str):
        """To verify the signature , expiration and user claims of token"""
        try:
            return jwt.decode(
                token,
                key=config_settings.JWT_SECRET,
                algorithms=[config_settings.JWT_ALGO],
            )
        except JWTError:
            return None


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a domain operation."""
    user_id: int
    role: str
    public_id: Optional[uuid.UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoleName.ADMIN.value


def get_actor(request: Request) -> Actor:
    # populated by AuthenticationMiddleware
    user_id = getattr(request.state, "user_identifier", None)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return Actor(user_id=user_id, role=request.state.user_role,
                 public_id=getattr(request.state, "user_public_id", None))


def require_roles(*roles: UserRoleName):
    allowed = {r.value for r in roles}

    async def _checker(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in allowed:
            raise Forbidden(f"Requires role: {', '.join(sorted(allowed))}")
        return actor

    return _checker
