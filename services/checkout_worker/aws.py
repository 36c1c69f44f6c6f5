"""boto3 client construction shared by the queue and ledger adapters."""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config

from common.config import AwsConfig, get_config


def make_client(service_name: str, settings: Optional[AwsConfig] = None) -> Any:
    cfg = settings or get_config().aws
    return boto3.client(
        service_name,
        region_name=cfg.region,
        endpoint_url=cfg.endpoint_url,
        config=Config(
            connect_timeout=cfg.connect_timeout_seconds,
            read_timeout=cfg.read_timeout_seconds,
            # Retries would stretch a step past the lease budget.
            retries={"max_attempts": 1, "mode": "standard"},
        ),
    )


__all__ = ["make_client"]
