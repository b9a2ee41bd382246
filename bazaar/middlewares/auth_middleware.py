import uuid
from typing import Sequence
from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from bazaar.common.utils import build_error, json_error
from bazaar.user.dependencies import Authentication
from bazaar.user.repository import identify_user_by_pid
from bazaar.middlewares.constants import logger


class AuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_maker, paths: Sequence[str]):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = tuple(paths)   # public path prefixes, no token needed

    async def dispatch(self, request: Request, call_next):

        if request.url.path.startswith(self.paths):
            return await call_next(request)

        try:
            auth_token = await Authentication()(request)
        except HTTPException as e:
            logger.warning("auth.middleware.failed", extra={
                "reason": e.detail,
                "path": request.url.path,
                "method": request.method
            })
            payload = build_error(code="INVALID_AUTH", message="Missing or Invalid Auth Headers")
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        try:
            user_pid = uuid.UUID(str(auth_token.get("sub")))
        except ValueError:
            payload = build_error(code="INVALID_AUTH", message="Invalid token subject")
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        async with self.session_maker() as session:
            user=await identify_user_by_pid(session,user_pid)

        if not user:
            logger.warning("auth.middleware.user_not_found", extra={
                "user_public_id": user_pid,
                "path": request.url.path
            })
            payload = build_error(code="INVALID_AUTH", message="User unidentified and not authorized")
            return json_error(payload, status_code=status.HTTP_403_FORBIDDEN)

        request.state.user_identifier, request.state.user_role = user
        request.state.user_public_id = user_pid  # Store public_id for logging

        logger.debug("auth.middleware.success", extra={
            "user_public_id": user_pid,
            "path": request.url.path
        })

        return await call_next(request)
