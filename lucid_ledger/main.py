from fastapi import FastAPI

from lucid_ledger.core.config import get_settings
from lucid_ledger.core.errors import register_error_handlers
from lucid_ledger.core.logging import configure_logging
from lucid_ledger.core.middleware import RequestIdMiddleware
from lucid_ledger.api.v1.router import v1_router


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # Domain errors -> {"detail", "code", "request_id"}
    register_error_handlers(app)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
