from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple
import asyncio
import json
import uuid

import structlog

from models import TransferRequest, TxStatus, TxStatusKind

logger = structlog.get_logger()


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


class SubmissionAdapter(ABC):
    @abstractmethod
    async def submit(
        self, contract: str, request: TransferRequest, output_path: Optional[str]
    ) -> TxStatus:
        """Dispatch one transfer to the system under test and report its status."""
        pass


class RawTransactionFileAdapter(SubmissionAdapter):
    """Writes transfers to a per-worker file ahead of the actual benchmark,
    one JSON object per line."""

    async def submit(
        self, contract: str, request: TransferRequest, output_path: Optional[str]
    ) -> TxStatus:
        transaction_id = str(uuid.uuid4())
        if not output_path:
            return TxStatus(
                transaction_id=transaction_id,
                status=TxStatusKind.failed,
                contract=contract,
                request=request,
                error="No output path configured",
            )

        line = json.dumps({"id": transaction_id, "contract": contract, **request.to_raw()})
        try:
            await asyncio.to_thread(_append_line, Path(output_path), line)
        except OSError as e:
            logger.warning(
                "Failed to write raw transaction",
                output_path=output_path,
                transaction_id=transaction_id,
                error=str(e),
            )
            return TxStatus(
                transaction_id=transaction_id,
                status=TxStatusKind.failed,
                contract=contract,
                request=request,
                error=str(e),
            )

        return TxStatus(
            transaction_id=transaction_id,
            status=TxStatusKind.success,
            contract=contract,
            request=request,
        )


class InMemorySubmissionAdapter(SubmissionAdapter):
    def __init__(self):
        self.submitted: List[Tuple[str, TransferRequest, Optional[str]]] = []

    async def submit(
        self, contract: str, request: TransferRequest, output_path: Optional[str]
    ) -> TxStatus:
        self.submitted.append((contract, request, output_path))
        return TxStatus(
            transaction_id=str(uuid.uuid4()),
            status=TxStatusKind.success,
            contract=contract,
            request=request,
        )

    def clear(self) -> None:
        """Forget recorded submissions (for testing)."""
        self.submitted.clear()
