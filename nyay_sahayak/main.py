import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from nyay_sahayak.api.errors import register_exception_handlers
from nyay_sahayak.api.v1.router import router as v1_router
from nyay_sahayak.config import settings
from nyay_sahayak.logging_config import configure_logging

logger = logging.getLogger("nyay_sahayak.api")

REQUEST_ID_HEADER = "X-Request-ID"
# audit_logs.request_id is String(64).
MAX_REQUEST_ID_LENGTH = 64


def _resolve_request_id(request: Request) -> str:
    supplied = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    return supplied[:MAX_REQUEST_ID_LENGTH] or str(uuid.uuid4())


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Nyay Sahayak Welfare Application API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Tag the request with an id that ends up in the response, the access log and audit rows.

        A caller-supplied X-Request-ID is reused (truncated to the audit column width).
        """

        request.state.request_id = _resolve_request_id(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        logger.info(
            "%s %s -> %s in %.1fms request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
        )
        return response

    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(v1_router, prefix="/api/v1")
    return app


app = create_app()
