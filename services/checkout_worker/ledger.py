"""
Transaction ledger writer (DynamoDB).

One unconditional ``put_item`` per completed checkout, keyed by cart id. A
redelivered message overwrites the same key with the same amounts, so the
ledger tolerates re-execution without a conditional write.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from common.config import get_config
from services.checkout_worker.aws import make_client
from services.checkout_worker.errors import LedgerWriteFailed
from services.checkout_worker.models import TransactionRecord

logger = logging.getLogger(__name__)


class TransactionLedger:
    def __init__(self, table_name: Optional[str] = None, client: Any = None) -> None:
        self.table_name = table_name or get_config().ledger.table_name
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = make_client("dynamodb")
        return self._client

    def write_transaction(self, record: TransactionRecord) -> None:
        logger.info("Sending transaction register for cart %s to %s", record.cart_id, self.table_name)
        try:
            self.client.put_item(TableName=self.table_name, Item=record.to_item())
        except (ClientError, BotoCoreError) as exc:
            logger.error("Ledger write failed for cart %s: %s", record.cart_id, exc)
            raise LedgerWriteFailed(f"Ledger write failed for cart {record.cart_id}: {exc}") from exc


__all__ = ["TransactionLedger"]
