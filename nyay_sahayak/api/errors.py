import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nyay_sahayak.exceptions import ApplicationError

logger = logging.getLogger("nyay_sahayak.api")


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _envelope(request: Request, *, status_code: int, detail, error: str | None = None) -> JSONResponse:
    request_id = _get_request_id(request)
    payload: dict = {"detail": detail, "request_id": request_id}
    if error is not None:
        payload["error"] = error

    response = JSONResponse(status_code=status_code, content=jsonable_encoder(payload))
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError):
        logger.info(
            "application_error request_id=%s kind=%s detail=%s",
            _get_request_id(request),
            exc.kind,
            exc.message,
        )
        return _envelope(request, status_code=exc.status_code, detail=exc.message, error=exc.kind)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, status_code=exc.status_code, detail=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(request, status_code=422, detail=exc.errors(), error="ValidationError")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error request_id=%s", _get_request_id(request), exc_info=exc)
        return _envelope(request, status_code=500, detail="Internal Server Error")
