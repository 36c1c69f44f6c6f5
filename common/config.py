from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

DEFAULT_QUEUE_URL = "http://localhost:4566/000000000000/start-checkout"


class AwsConfig(BaseModel):
    region: str = Field(default="us-east-1")
    # Set for LocalStack; None lets boto3 resolve the real endpoints.
    endpoint_url: Optional[str] = Field(default=None)
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    read_timeout_seconds: float = Field(default=10.0, gt=0)


class QueueConfig(BaseModel):
    """
    Settings for the start-checkout SQS queue.

    ``visibility_timeout_seconds`` is the lease: a received message stays
    hidden from other workers for this long. It must outlast the whole
    pipeline, see ``AppConfig._validate_lease_covers_pipeline``.
    """

    url: str = Field(default=DEFAULT_QUEUE_URL)
    wait_time_seconds: int = Field(default=15, ge=0, le=20)
    visibility_timeout_seconds: int = Field(default=121, ge=0, le=43200)
    max_messages: Literal[1] = Field(default=1)


class CurrencyApiConfig(BaseModel):
    base_url: str = Field(default="http://localhost:8081")
    timeout_seconds: float = Field(default=10.0, gt=0)


class InvoiceApiConfig(BaseModel):
    base_url: str = Field(default="http://localhost:8082")
    timeout_seconds: float = Field(default=30.0, gt=0)


class KafkaConfig(BaseModel):
    bootstrap_servers: str = Field(default="localhost:9092")
    orders_topic: str = Field(default="orders_topic")
    delivery_timeout_seconds: float = Field(default=10.0, gt=0)


class LedgerConfig(BaseModel):
    table_name: str = Field(default="transaction_register")


class WorkerConfig(BaseModel):
    log_level: str = Field(default="INFO")
    metrics_port: Optional[int] = Field(default=None, ge=1, le=65535)
    poll_error_backoff_seconds: float = Field(default=5.0, ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class AppConfig(BaseModel):
    environment: Literal["local", "production"] = Field(default="local")

    aws: AwsConfig = Field(default_factory=AwsConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    currency_api: CurrencyApiConfig = Field(default_factory=CurrencyApiConfig)
    invoice_api: InvoiceApiConfig = Field(default_factory=InvoiceApiConfig)
    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def pipeline_budget_seconds(self) -> float:
        """Worst-case time one message can spend in the downstream steps."""
        return (
            self.currency_api.timeout_seconds
            + self.invoice_api.timeout_seconds
            + self.kafka.delivery_timeout_seconds
            + self.aws.read_timeout_seconds
        )

    @model_validator(mode="after")
    def _validate_lease_covers_pipeline(self) -> "AppConfig":
        # A lease shorter than the pipeline lets a second worker pick up the
        # same message while the first is still posting it.
        if self.queue.visibility_timeout_seconds <= self.pipeline_budget_seconds:
            raise ValueError(
                "queue.visibility_timeout_seconds "
                f"({self.queue.visibility_timeout_seconds}s) must exceed the pipeline "
                f"timeout budget ({self.pipeline_budget_seconds:g}s)."
            )
        return self

    @model_validator(mode="after")
    def _validate_environment_requirements(self) -> "AppConfig":
        if self.environment == "production":
            if self.queue.url == DEFAULT_QUEUE_URL:
                raise ValueError("In production, CHECKOUT_QUEUE_URL is required.")
            for name, url in (
                ("CURRENCY_API_BASE_URL", self.currency_api.base_url),
                ("INVOICE_API_BASE_URL", self.invoice_api.base_url),
            ):
                if not url.startswith("https://"):
                    raise ValueError(f"In production, {name} must be an https:// URL.")
        return self


def _load_env(env_file: Optional[str]) -> None:
    # Load env file if present; do not override explicit process environment.
    if env_file:
        load_dotenv(env_file, override=False)
        return

    cwd = Path.cwd()
    for base in (cwd, *cwd.parents):
        candidate = base / ".env"
        if candidate.exists():
            load_dotenv(candidate, override=False)
            return


def _from_env(prefix: str, key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{prefix}{key}", default)


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Load configuration from environment variables (and optional env file).

    Env var names are grouped with prefixes:
    - ENVIRONMENT
    - AWS_*
    - CHECKOUT_QUEUE_*
    - CURRENCY_API_*
    - INVOICE_API_*
    - KAFKA_*
    - LEDGER_*
    - WORKER_*
    """
    _load_env(env_file)

    environment = os.getenv("ENVIRONMENT", "local")

    aws = AwsConfig(
        region=_from_env("AWS_", "REGION", "us-east-1") or "us-east-1",
        endpoint_url=_from_env("AWS_", "ENDPOINT_URL", None) or None,
        connect_timeout_seconds=float(_from_env("AWS_", "CONNECT_TIMEOUT_SECONDS", "5") or "5"),
        read_timeout_seconds=float(_from_env("AWS_", "READ_TIMEOUT_SECONDS", "10") or "10"),
    )

    queue = QueueConfig(
        url=_from_env("CHECKOUT_QUEUE_", "URL", DEFAULT_QUEUE_URL) or DEFAULT_QUEUE_URL,
        wait_time_seconds=int(_from_env("CHECKOUT_QUEUE_", "WAIT_TIME_SECONDS", "15") or "15"),
        visibility_timeout_seconds=int(
            _from_env("CHECKOUT_QUEUE_", "VISIBILITY_TIMEOUT_SECONDS", "121") or "121"
        ),
    )

    currency_api = CurrencyApiConfig(
        base_url=(_from_env("CURRENCY_API_", "BASE_URL", "http://localhost:8081") or "http://localhost:8081").rstrip("/"),
        timeout_seconds=float(_from_env("CURRENCY_API_", "TIMEOUT_SECONDS", "10") or "10"),
    )

    invoice_api = InvoiceApiConfig(
        base_url=(_from_env("INVOICE_API_", "BASE_URL", "http://localhost:8082") or "http://localhost:8082").rstrip("/"),
        timeout_seconds=float(_from_env("INVOICE_API_", "TIMEOUT_SECONDS", "30") or "30"),
    )

    kafka = KafkaConfig(
        bootstrap_servers=_from_env("KAFKA_", "BOOTSTRAP_SERVERS", "localhost:9092") or "localhost:9092",
        orders_topic=_from_env("KAFKA_", "ORDERS_TOPIC", "orders_topic") or "orders_topic",
        delivery_timeout_seconds=float(_from_env("KAFKA_", "DELIVERY_TIMEOUT_SECONDS", "10") or "10"),
    )

    ledger = LedgerConfig(
        table_name=_from_env("LEDGER_", "TABLE_NAME", "transaction_register") or "transaction_register",
    )

    metrics_port = _from_env("WORKER_", "METRICS_PORT", None)
    worker = WorkerConfig(
        log_level=_from_env("WORKER_", "LOG_LEVEL", None) or os.getenv("LOG_LEVEL", "INFO"),
        metrics_port=int(metrics_port) if metrics_port else None,
        poll_error_backoff_seconds=float(_from_env("WORKER_", "POLL_ERROR_BACKOFF_SECONDS", "5") or "5"),
    )

    try:
        return AppConfig(
            environment=environment,
            aws=aws,
            queue=queue,
            currency_api=currency_api,
            invoice_api=invoice_api,
            kafka=kafka,
            ledger=ledger,
            worker=worker,
        )
    except ValidationError as e:
        # Re-raise with a message that's easier to spot in logs/tests.
        raise ValidationError.from_exception_data(e.title, e.errors()) from e


@lru_cache(maxsize=1)
def get_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Cached config loader. In tests, prefer calling `load_config()` directly
    or clear this cache via `get_config.cache_clear()`.
    """
    return load_config(env_file=env_file)
