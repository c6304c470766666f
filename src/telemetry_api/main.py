from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from telemetry_api.alarms.config import AlarmsConfig
from telemetry_api.alarms.service import AlarmsService
from telemetry_api.alarms.task_runner import BackgroundTaskRunner
from telemetry_api.errors import handle_broad_exceptions
from telemetry_api.errors import handle_pydantic_validation_errors
from telemetry_api.errors import handle_storage_errors
from telemetry_api.monitoring.logger import configure_logger
from telemetry_api.monitoring.request_context import RequestContextMiddleware
from telemetry_api.routes.routes_alarms_by_rule import ROUTER_ALARMS_BY_RULE
from telemetry_api.routes.routes_health import ROUTER_HEALTH
from telemetry_api.settings import Settings
from telemetry_api.storage.errors import StorageError
from telemetry_api.storage.pool import DocumentDBPool
from telemetry_api.storage.storage_client import StorageClient


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded from environment variables (or a .env file) via pydantic-settings.
    """
    settings = settings or Settings()

    configure_logger(level=settings.log_level, json_logs=settings.log_json)

    logger.info(
        "Configuration loaded successfully",
        storage_configured=bool(settings.storage_connection_string),
        alarms_database=settings.alarms_database,
        alarms_collection=settings.alarms_collection,
        max_delete_retries=settings.alarms_max_delete_retries,
    )

    app = FastAPI(
        title="Device Telemetry API",
        version="v1",
        description=dedent(
            """
        Alarms generated from device telemetry.

        Deleting the alarms of a rule runs in the background: `POST /v1/alarmsbyrule/delete/{rule_id}`
        answers 202 with an operation id, and `GET /v1/alarmsbyrule/deletestatus/{operation_id}`
        reports its progress.
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )
    app.state.settings = settings
    app.state.task_runner = BackgroundTaskRunner()

    if settings.storage_connection_string:
        document_db_pool = DocumentDBPool(
            settings.storage_connection_string,
            min_size=settings.storage_pool_min_size,
            max_size=settings.storage_pool_max_size,
        )
        app.state.document_db_pool = document_db_pool
        app.state.alarms_service = AlarmsService(
            StorageClient(document_db_pool),
            AlarmsConfig.from_settings(settings),
            app.state.task_runner,
        )
        logger.info("Alarm storage configured")
    else:
        logger.warning("Alarm storage not configured (storage_connection_string not set) - alarm routes return 503")

    @app.on_event("startup")
    async def startup_storage():
        """Initialize the document database."""
        if getattr(app.state, "document_db_pool", None) is not None:
            await app.state.document_db_pool.initialize()

    @app.on_event("shutdown")
    async def shutdown_storage():
        """Report running operations and close storage connections."""
        await app.state.task_runner.shutdown()
        if getattr(app.state, "document_db_pool", None) is not None:
            await app.state.document_db_pool.close()

    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH)
    app.include_router(ROUTER_ALARMS_BY_RULE, prefix="/v1")

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=StorageError,
        handler=handle_storage_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
