from pydantic import BaseModel, ConfigDict, Field, model_validator
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime, timezone

USER_TRANSFER = "userTransfer"
USER_TRANSFER_SIGNATURE = "userTransfer(string,string,uint256)"
AMOUNT_LIMIT = 100  # transfer amounts are always below this


class TxStatusKind(str, Enum):
    success = "success"
    failed = "failed"


class Account(BaseModel):
    """One roster entry. The balance is local bookkeeping only; the
    authoritative balance lives in the system under test."""

    account_id: str = Field(..., min_length=1, description="Account identifier")
    balance: int = Field(..., description="Illustrative balance, may go negative")


class TransferRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_type: Literal["userTransfer"] = Field(
        USER_TRANSFER, description="Operation kind"
    )
    from_account: str = Field(..., alias="from", description="Source account identifier")
    to_account: str = Field(..., alias="to", description="Destination account identifier")
    amount: int = Field(..., alias="num", ge=0, lt=AMOUNT_LIMIT, description="Transfer amount")

    def to_raw(self) -> Dict[str, Any]:
        """Raw transaction payload as written for the SUT adapter."""
        return {
            "transaction_type": USER_TRANSFER_SIGNATURE,
            "from": self.from_account,
            "to": self.to_account,
            "num": self.amount,
        }


class RoundContext(BaseModel):
    worker_index: int = Field(..., ge=0, description="0-based index of the worker")
    total_workers: int = Field(..., ge=1, description="Workers participating in the round")
    round_index: int = Field(0, ge=0, description="0-based index of the current round")
    round_arguments: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_worker_index(self):
        if self.worker_index >= self.total_workers:
            raise ValueError("worker_index must be lower than total_workers")
        return self


class TxStatus(BaseModel):
    transaction_id: str = Field(..., description="Locally assigned transaction identifier")
    status: TxStatusKind
    contract: str
    request: TransferRequest
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None


class RoundRequest(BaseModel):
    round_index: int = Field(0, ge=0)
    total_workers: Optional[int] = Field(None, ge=1, le=256)
    round_arguments: Dict[str, Any] = Field(default_factory=dict)


class RoundResponse(BaseModel):
    round_index: int
    total_workers: int
    accounts_count: int


class RunRequest(BaseModel):
    transactions_per_worker: int = Field(..., ge=1, le=100_000)


class RoundSummary(BaseModel):
    round_index: int
    total_workers: int
    submitted: int
    succeeded: int
    failed: int


class WorkerAccounts(BaseModel):
    worker_index: int
    generated: int
    accounts: List[Account]


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of accounts in the roster")
    workers: int = Field(..., description="Workers in the current round")
    transactions_generated: int = Field(..., description="Transfers generated in the current round")
