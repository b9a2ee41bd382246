import secrets
import string
from datetime import datetime,timezone
from typing import Any, Dict, Optional, Union

from fastapi.responses import JSONResponse

from bazaar.common.constants import request_id_ctx

_REF_ALPHABET = string.ascii_uppercase + string.digits


def now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    return int(now().timestamp() * 1000)


def random_code(length: int) -> str:
    return "".join(secrets.choice(_REF_ALPHABET) for _ in range(length))


def build_success(data: Any, message: Optional[str] = None,
                  request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "status": "ok",
        "message": message,
        "data": data,
        "error": None,
        "request_id": request_id or request_id_ctx.get(),
    }

def build_error(code: Union[str, int] = "UNKNOWN_ERROR",
                details: Optional[Any] = None,
                message: Optional[str] = None,
                request_id: Optional[str] = None) -> Dict[str, Any]:

    return {
        "status": "error",
        "message": message,
        "data": None,
        "error": {"code": code, "details": details},
        "request_id": request_id or request_id_ctx.get(),
    }

def json_ok(content: Dict[str, Any], status_code: int = 200,headers = None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code,headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def success_response(data: Any, status_code: int = 200, message: Optional[str] = None,
                     headers: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = build_success(data, message=message)
    return json_ok(content, status_code=status_code,headers=headers)
