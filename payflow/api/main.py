# payflow/api/main.py
import logging
import random
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import create_engine

from ..config import Settings
from ..events import EventPublisher, InMemoryEventBus, KafkaEventPublisher
from ..gateways import GatewaySimulator, Sleeper
from ..repository import (
    InMemoryTransactionRepository,
    SqlTransactionRepository,
    TransactionRepository,
)
from ..scheduling import AsyncioScheduler, Clock, Scheduler, SystemClock
from ..simulator import SettlementSimulator
from ..state_machine import TransactionService
from .admin_api import router as admin_router
from .gateways import router as gateways_router
from .transfers import router as transfers_router

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Wiring
# -------------------------------------------------------------------


def build_repository(settings: Settings) -> TransactionRepository:
    if settings.transaction_store == "sql":
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
        return SqlTransactionRepository(engine)
    return InMemoryTransactionRepository()


def build_publisher(settings: Settings) -> EventPublisher:
    if settings.event_backend == "kafka":
        return KafkaEventPublisher.from_bootstrap(settings.kafka_bootstrap, settings.kafka_topic)
    return InMemoryEventBus()


def create_app(
    settings: Optional[Settings] = None,
    *,
    repository: Optional[TransactionRepository] = None,
    scheduler: Optional[Scheduler] = None,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
    sleep: Optional[Sleeper] = None,
    publisher: Optional[EventPublisher] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper())

    scheduler = scheduler or AsyncioScheduler()
    if clock is None:
        # a virtual scheduler doubles as the clock
        clock = scheduler if hasattr(scheduler, "now") else SystemClock()
    rng = rng or random.Random()

    service = TransactionService(
        repository or build_repository(settings),
        clock=clock,
        publisher=publisher or build_publisher(settings),
    )
    simulator = SettlementSimulator(
        service,
        scheduler,
        rng,
        gateway_delay=settings.gateway_confirm_delay,
        settlement_delay=settings.settlement_start_delay,
        result_delay=settings.settlement_result_delay,
        success_rate=settings.settlement_success_rate,
    )

    logger.info(
        "Payflow API: store=%s events=%s simulate_settlement=%s",
        settings.transaction_store, settings.event_backend, settings.simulate_settlement,
    )

    app = FastAPI(title="Payflow API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.service = service
    app.state.simulator = simulator
    app.state.gateways = GatewaySimulator(rng, sleep)
    app.state.rng = rng

    app.include_router(admin_router)
    app.include_router(gateways_router)
    app.include_router(transfers_router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
