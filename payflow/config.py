# payflow/config.py
import os
from typing import Literal

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    transaction_store: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite:///./payflow.db"

    event_backend: Literal["memory", "kafka"] = "memory"
    kafka_bootstrap: str = "kafka:9092"
    kafka_topic: str = "transactions"

    admin_token: str = "dev-admin"
    log_level: str = "INFO"

    # settlement simulation (seconds)
    simulate_settlement: bool = True
    gateway_confirm_delay: float = Field(2.0, ge=0)
    settlement_start_delay: float = Field(3.0, ge=0)
    settlement_result_delay: float = Field(5.0, ge=0)
    settlement_success_rate: float = Field(0.8, ge=0, le=1)

    gateway_base_url: str = "http://localhost:8000"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            transaction_store=os.getenv("TRANSACTION_STORE", "memory"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./payflow.db"),
            event_backend=os.getenv("EVENT_BACKEND", "memory"),
            kafka_bootstrap=os.getenv("KAFKA_BOOTSTRAP", "kafka:9092"),
            kafka_topic=os.getenv("KAFKA_TOPIC", "transactions"),
            admin_token=os.getenv("ADMIN_TOKEN", "dev-admin"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            simulate_settlement=_env_bool("SIMULATE_SETTLEMENT", True),
            gateway_confirm_delay=float(os.getenv("GATEWAY_CONFIRM_DELAY", "2.0")),
            settlement_start_delay=float(os.getenv("SETTLEMENT_START_DELAY", "3.0")),
            settlement_result_delay=float(os.getenv("SETTLEMENT_RESULT_DELAY", "5.0")),
            settlement_success_rate=float(os.getenv("SETTLEMENT_SUCCESS_RATE", "0.8")),
            gateway_base_url=os.getenv("GATEWAY_BASE_URL", "http://localhost:8000"),
        )
