"""FastAPI application main module.

This module defines the FastAPI application for the ShopRec personalization
service. The personalization service is created once per application and
injected into route handlers through ``app.state``.
"""

from typing import Dict, Optional

from fastapi import FastAPI

from src import __version__
from src.api.exceptions import register_exception_handlers
from src.api.logging_config import RequestLoggingMiddleware, setup_logging
from src.api.metrics import PerformanceTracker
from src.api.routes import personalization
from src.personalization.config import EngineConfig
from src.personalization.service import PersonalizationService


def create_app(
    service: Optional[PersonalizationService] = None,
    config: Optional[EngineConfig] = None,
    configure_logging: bool = False,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        service: Personalization service to serve; built from ``config`` if None.
        config: Runtime configuration; read from the environment if None.
        configure_logging: Install JSON logging on the root logger.

    Returns:
        Configured FastAPI application.
    """
    config = config or EngineConfig.from_env()
    if configure_logging:
        setup_logging(config.log_level)

    application = FastAPI(
        title="ShopRec API",
        description="Behavioral personalization service for the storefront",
        version=__version__,
    )
    application.state.service = service or PersonalizationService.from_config(config)
    application.state.performance = PerformanceTracker()

    application.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(application)
    application.include_router(personalization.router)

    @application.get("/ping")
    def ping() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Dictionary with status key set to "ok".
        """
        return {"status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(configure_logging=True),
        host="0.0.0.0",
        port=8000,
    )
