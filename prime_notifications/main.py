import logging
from contextlib import asynccontextmanager

from exponent_server_sdk import PushClient
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from prime_notifications.config import Settings, get_settings
from prime_notifications.domain.exceptions import BrokerUnavailable, NotificationError
from prime_notifications.infrastructure.broker import BrokerTransport
from prime_notifications.infrastructure.database import (
    SessionLocal,
    build_engine,
    initialize_database,
)
from prime_notifications.infrastructure.notifications import (
    NotificationEventPublisher,
    PushDeliveryAdapter,
    RealtimeGateway,
)
from prime_notifications.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the tables, connect to the broker and release everything on shutdown."""

    state = app.state
    initialize_database(state.session_factory.kw["bind"])

    try:
        # Declares the broker topology before the push consumer starts.
        await state.push_adapter.start(state.publisher)
    except BrokerUnavailable as exc:
        logger.warning("Starting without the message broker: %s", exc)

    state.gateway.start_keepalive(state.settings.ws_idle_timeout_seconds)
    try:
        yield
    finally:
        await state.gateway.shutdown()
        await state.push_adapter.stop()
        await state.transport.close()
        state.session_factory.kw["bind"].dispose()


async def handle_notification_error(request: Request, exc: NotificationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


def create_app(
    settings: Settings | None = None,
    *,
    transport: BrokerTransport | None = None,
    session_factory: sessionmaker | None = None,
    push_client: PushClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if session_factory is None:
        if settings.database_url == get_settings().database_url:
            session_factory = SessionLocal
        else:
            session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=build_engine(settings.database_url)
            )

    transport = transport or BrokerTransport.from_settings(settings)
    publisher = NotificationEventPublisher(
        transport,
        publish_timeout=settings.rabbitmq_publish_timeout or None,
        fanout_queue_max_length=settings.rabbitmq_fanout_queue_max_length or None,
    )
    push_adapter = PushDeliveryAdapter.from_settings(
        settings, session_factory, client=push_client
    )

    app = FastAPI(title="Prime notifications", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.transport = transport
    app.state.publisher = publisher
    app.state.push_adapter = push_adapter
    app.state.gateway = RealtimeGateway(publisher)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(NotificationError, handle_notification_error)

    register_routes(app, settings.api_prefix)
    return app
