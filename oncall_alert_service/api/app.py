"""FastAPI application factory and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from oncall_alert_service import __version__
from oncall_alert_service.api.middleware import CorrelationIdMiddleware, ErrorHandlingMiddleware, LoggingMiddleware
from oncall_alert_service.clients.connection import HttpClientManager
from oncall_alert_service.clients.notifier import SlackNotifier
from oncall_alert_service.config.logging import LoggingService
from oncall_alert_service.config.settings import ServiceConfig
from oncall_alert_service.models.schemas import (
    AggregateResult,
    AlertInfo,
    ErrorResponse,
    HealthCheckResponse,
    ScheduleById,
    ScheduleByName,
    ScheduleReference,
)
from oncall_alert_service.services.alert_service import AlertService
from oncall_alert_service.services.dispatcher import Dispatcher
from oncall_alert_service.services.roster_resolver import RosterError, RosterResolver

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

ROSTER_ERROR_RESPONSES = {
    418: {"model": ErrorResponse, "description": "No one is on call, or nobody on call has a phone number"},
    422: {"model": ErrorResponse, "description": "Schedule lookup rejected by the roster provider"},
    500: {"model": ErrorResponse, "description": "Contact lookup failed"},
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logging_service.log_operation(
        "info",
        "On-call alert service starting up...",
        operation="service_startup",
        notifications_enabled=app.state.config.notifications_enabled,
    )
    await app.state.http_client_manager.initialize(app.state.http_timeout)

    yield

    logging_service.log_operation(
        "info",
        "On-call alert service shutting down...",
        operation="service_shutdown"
    )
    await app.state.http_client_manager.close()


# Dependency injection
def get_service_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client_manager.get_client()


def get_alert_service(
    config: ServiceConfig = Depends(get_service_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> AlertService:
    """Get AlertService wired to the configured providers."""
    notifier = SlackNotifier(config.notification, client) if config.notification else None
    return AlertService(
        resolver=RosterResolver(config.roster, client),
        dispatcher=Dispatcher(config.dialer, client),
        notifier=notifier,
    )


def get_schedule_reference(
    schedule_id: Optional[str] = Query(default=None, alias="id", min_length=1, description="Schedule id"),
    schedule_name: Optional[str] = Query(default=None, alias="name", min_length=1, description="Schedule name"),
) -> ScheduleReference:
    """Build the schedule reference from exactly one of ``id`` and ``name``."""
    if (schedule_id is None) == (schedule_name is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Exactly one of the query parameters 'id' and 'name' is required"
        )
    try:
        if schedule_id is not None:
            return ScheduleById(identifier=schedule_id)
        return ScheduleByName(identifier=schedule_name)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="; ".join(error["msg"] for error in e.errors()),
        ) from e


def create_app(config: ServiceConfig, http_timeout: float = 10.0,
               debug: bool = False) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Validated service configuration
        http_timeout: Timeout in seconds for every provider call
        debug: FastAPI debug mode
    """
    app = FastAPI(
        title="On-Call Alert Service",
        description="Finds out who is on call and rings them",
        version=__version__,
        lifespan=lifespan,
        debug=debug,
    )
    app.state.config = config
    app.state.http_timeout = http_timeout
    app.state.http_client_manager = HttpClientManager()

    # Last added runs first: correlation id, then logging, then error handling
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(config: ServiceConfig = Depends(get_service_config)):
        """Health check endpoint."""
        logger.debug("Responding healthy to healthcheck")
        return HealthCheckResponse(
            status="healthy",
            notifications_enabled=config.notifications_enabled,
        )

    @app.get(
        "/oncallnumber",
        response_model=AlertInfo,
        responses=ROSTER_ERROR_RESPONSES,
    )
    async def get_person_on_call(
        schedule: ScheduleReference = Depends(get_schedule_reference),
        service: AlertService = Depends(get_alert_service),
    ):
        """Get the person on call for a schedule and how to reach them."""
        try:
            return await service.lookup(schedule)
        except RosterError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))

    @app.get(
        "/alert",
        response_model=AggregateResult,
        responses=ROSTER_ERROR_RESPONSES,
    )
    async def alert_on_call(
        schedule: ScheduleReference = Depends(get_schedule_reference),
        workflow: Optional[str] = Query(default=None, min_length=1, description="Dialer workflow id"),
        config: ServiceConfig = Depends(get_service_config),
        service: AlertService = Depends(get_alert_service),
    ):
        """Ring everyone on call for a schedule."""
        workflow_id = workflow or config.dialer.default_workflow_id
        if workflow_id is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="No workflow given and no default workflow configured"
            )

        try:
            return await service.alert(schedule, workflow_id)
        except RosterError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))

    return app
