from typing import Any

from fastapi.responses import JSONResponse

from tripline.services.exceptions import TriplineError


def success_response(data: Any, msg: str = "ok", code: int = 0) -> dict[str, Any]:
    """Return payload formatted as the ``{code, msg, data}`` envelope."""
    return {"code": code, "msg": msg, "data": data}


def error_response(msg: str, code: int = 15000, data: Any = None) -> dict[str, Any]:
    return {"code": code, "msg": msg, "data": data}


def service_error_response(
    exc: TriplineError, *, data: Any = None, status_code: int = 400
) -> JSONResponse:
    """Business errors are reported as HTTP 400 carrying the error's own code."""
    return JSONResponse(
        status_code=status_code,
        content=error_response(exc.message, code=exc.code, data=data),
    )
