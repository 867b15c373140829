from urllib.parse import urlparse

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from app.api.exception_handlers import register_exception_handlers
from app.api.v1.router import api_router
from app.core.config import Environment, settings
from app.core.logging import configure_logging


def create_app(environment: Environment | None = None) -> FastAPI:
    """
    Build the API application.

    Args:
        environment: Overrides the configured environment (disclosure policy)
    """
    application = FastAPI(title="CRM API")
    application.state.environment = environment or settings.environment

    # Registered before CORS so error responses still carry CORS headers
    register_exception_handlers(application)

    if settings.frontend_url:
        parsed = urlparse(settings.frontend_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        application.add_middleware(
            CORSMiddleware,
            allow_origins=[origin],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health")
    def health():
        return {"status": "ok"}

    return application


configure_logging(settings.log_level)
app = create_app()
