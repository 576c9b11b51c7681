"""Error envelope — every failure leaves the API as {"error": ..., "details"?: ...}.

Handlers registered on the app by main.create_app():
- request validation → 400 with per-field details
- HTTPException → its status; a dict detail is used as the body as-is
  (the guest quota 403 carries ``requiresAuth``)
- anything else → logged with traceback, 500 with a generic message

A guest cookie minted during the failed request is re-sent on the error
response, so a first request that 404s still establishes the guest.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow.auth.guest import guest_store

logger = structlog.get_logger()

# Location prefixes FastAPI puts in front of the field path.
_SOURCES = ("body", "query", "path", "header", "cookie")


def field_errors(errors) -> list[dict]:
    details = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in _SOURCES]
        details.append(
            {
                "field": ".".join(loc) or None,
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
        )
    return details


def invalid_input(details: list[dict]) -> dict:
    return {"error": "Invalid input data", "details": details}


async def validation_error_handler(request: Request, exc: RequestValidationError):
    response = JSONResponse(status_code=400, content=invalid_input(field_errors(exc.errors())))
    guest_store.reissue(request, response)
    return response


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    response = JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )
    guest_store.reissue(request, response)
    return response


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request.unhandled_error", path=request.url.path)
    response = JSONResponse(status_code=500, content={"error": "Internal server error"})
    guest_store.reissue(request, response)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
