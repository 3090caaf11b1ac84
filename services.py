from pathlib import Path
from typing import List, Optional
import asyncio
import random

import structlog

from adapters import SubmissionAdapter
from config import Settings
from exceptions import RosterError, WorkloadNotInitializedError
from models import (
    AMOUNT_LIMIT,
    Account,
    RoundContext,
    RoundSummary,
    TransferRequest,
    TxStatus,
    TxStatusKind,
)
from repositories import AccountRoster

# Configure structured logging
logger = structlog.get_logger()


class WorkloadGenerator:
    """Round-robin transfer generator over a fixed account list.

    The source account is ``index % N`` and the destination is offset by
    ``N // 2``, so both walk the whole list every N calls and never coincide.
    Only the amount is random. Balances are updated without any funds check.
    """

    def __init__(
        self,
        accounts: List[Account],
        max_amount: int = AMOUNT_LIMIT,
        rng: Optional[random.Random] = None,
    ):
        if len(accounts) < 2:
            raise RosterError(
                f"At least two accounts are required to generate transfers, got {len(accounts)}"
            )
        if max_amount < 1 or max_amount > AMOUNT_LIMIT:
            raise ValueError(f"max_amount must be between 1 and {AMOUNT_LIMIT}, got {max_amount}")
        self.accounts = accounts
        self.max_amount = max_amount
        self.rng = rng or random.Random()
        self.index = 0

    def next(self) -> TransferRequest:
        count = len(self.accounts)
        from_index = self.index % count
        to_index = (self.index + count // 2) % count
        amount = self.rng.randint(0, self.max_amount - 1)

        source = self.accounts[from_index]
        destination = self.accounts[to_index]
        source.balance -= amount
        destination.balance += amount
        self.index += 1

        logger.debug(
            "Transfer generated",
            index=self.index,
            from_account=source.account_id,
            to_account=destination.account_id,
            amount=amount,
        )

        return TransferRequest(
            from_account=source.account_id,
            to_account=destination.account_id,
            amount=amount,
        )


class TransferWorkloadModule:
    """Per-worker workload module driven by the benchmark harness."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.context: Optional[RoundContext] = None
        self.adapter: Optional[SubmissionAdapter] = None
        self.generator: Optional[WorkloadGenerator] = None
        self.file: Optional[str] = None

    def initialize(
        self,
        context: RoundContext,
        adapter: SubmissionAdapter,
        roster: AccountRoster,
        rng: Optional[random.Random] = None,
    ) -> None:
        if rng is None and self.settings.random_seed is not None:
            # Distinct, reproducible stream per worker and round
            rng = random.Random(
                f"{self.settings.random_seed}:{context.round_index}:{context.worker_index}"
            )

        self.generator = WorkloadGenerator(
            roster.get_accounts(), max_amount=self.settings.max_amount, rng=rng
        )
        self.context = context
        self.adapter = adapter
        if self.settings.output_dir:
            self.file = str(Path(self.settings.output_dir) / f".{context.worker_index}.transactions")

        logger.info(
            "Workload module initialized",
            worker_index=context.worker_index,
            total_workers=context.total_workers,
            round_index=context.round_index,
            accounts_count=len(self.generator.accounts),
            output_file=self.file,
        )

    def _require_generator(self) -> WorkloadGenerator:
        if self.generator is None:
            raise WorkloadNotInitializedError("Workload module used before initialize()")
        return self.generator

    def next(self) -> TransferRequest:
        return self._require_generator().next()

    async def submit_transaction(self) -> TxStatus:
        request = self.next()
        return await self.adapter.submit(self.settings.contract_name, request, self.file)

    @property
    def generated(self) -> int:
        return self.generator.index if self.generator else 0

    @property
    def accounts(self) -> List[Account]:
        return self._require_generator().accounts


def create_workload_module(settings: Settings) -> TransferWorkloadModule:
    """Create a new instance of the workload module."""
    return TransferWorkloadModule(settings)


class WorkloadRound:
    """One benchmark round: a workload module per worker, each with its own roster copy."""

    def __init__(
        self,
        settings: Settings,
        adapter: SubmissionAdapter,
        roster: AccountRoster,
        round_index: int = 0,
        total_workers: Optional[int] = None,
        round_arguments: Optional[dict] = None,
    ):
        self.settings = settings
        self.round_index = round_index
        self.total_workers = total_workers or settings.total_workers
        self.workers: List[TransferWorkloadModule] = []

        for worker_index in range(self.total_workers):
            module = create_workload_module(settings)
            module.initialize(
                RoundContext(
                    worker_index=worker_index,
                    total_workers=self.total_workers,
                    round_index=round_index,
                    round_arguments=round_arguments or {},
                ),
                adapter,
                roster,
            )
            self.workers.append(module)

        logger.info(
            "Workload round initialized",
            round_index=round_index,
            total_workers=self.total_workers,
        )

    def get_worker(self, worker_index: int) -> TransferWorkloadModule:
        if worker_index < 0 or worker_index >= len(self.workers):
            raise IndexError(f"Worker {worker_index} is not part of round {self.round_index}")
        return self.workers[worker_index]

    @property
    def transactions_generated(self) -> int:
        return sum(worker.generated for worker in self.workers)

    async def _run_worker(self, worker: TransferWorkloadModule, transactions: int) -> List[TxStatus]:
        results = []
        for _ in range(transactions):
            results.append(await worker.submit_transaction())
        return results

    async def run(self, transactions_per_worker: int) -> RoundSummary:
        per_worker = await asyncio.gather(
            *(self._run_worker(worker, transactions_per_worker) for worker in self.workers)
        )
        statuses = [status for results in per_worker for status in results]
        succeeded = sum(1 for s in statuses if s.status == TxStatusKind.success)

        summary = RoundSummary(
            round_index=self.round_index,
            total_workers=self.total_workers,
            submitted=len(statuses),
            succeeded=succeeded,
            failed=len(statuses) - succeeded,
        )
        logger.info("Workload round completed", **summary.model_dump())
        return summary
