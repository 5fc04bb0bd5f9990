"""
Brand-Parallel Orchestrator

Partitions pseudonymized sales by brand, runs the analytics engine once per
brand in a worker pool plus once chain-wide, and merges everything into one
GlobalSnapshot.

Run states: idle -> grouped -> dispatched -> merged -> written. Any brand
worker failing or timing out moves the run to failed and nothing is written.

A failed run never waits on a hung brand: process workers are terminated
and thread workers run as daemon threads that are abandoned.
"""

import asyncio
import os
import threading
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import structlog

from sales_snapshot.analytics import (
    BrandAnalytics,
    GlobalSnapshot,
    build_customer_list,
    build_sales_frame,
    compute_analytics,
    get_brand_performance,
    get_customer_purchases,
    group_records,
)
from sales_snapshot.analytics.primitives import select_records
from sales_snapshot.analytics.schemas import BrandPerformance
from sales_snapshot.config import get_settings
from sales_snapshot.exceptions import BrandAnalyticsError
from sales_snapshot.ingestion import SalesRecord
from sales_snapshot.quality import ValidationResult, create_sales_validator
from sales_snapshot.transformation.demographics import DemographicsLookup
from sales_snapshot.config.logging import bind_run_context
from .snapshot import write_snapshot

logger = structlog.get_logger(__name__)
settings = get_settings()


class PipelineState(str, Enum):
    """Snapshot run states"""
    IDLE = "idle"
    GROUPED = "grouped"
    DISPATCHED = "dispatched"
    MERGED = "merged"
    WRITTEN = "written"
    FAILED = "failed"


class ExecutorKind(str, Enum):
    PROCESS = "process"
    THREAD = "thread"


@dataclass(frozen=True)
class BrandWorkPayload:
    """Everything one brand worker needs; pickled whole for process pools"""
    brand_code: str
    records: List[SalesRecord]
    demographics: DemographicsLookup
    reference: datetime
    top_n: int


def run_brand_analytics(payload: BrandWorkPayload) -> BrandAnalytics:
    """Worker entry point: the analytics battery over one brand's records"""
    return compute_analytics(payload.records, payload.demographics, payload.reference, payload.top_n)


BrandWorker = Callable[[BrandWorkPayload], BrandAnalytics]


@dataclass
class SnapshotResult:
    """Outcome of a snapshot run"""
    state: PipelineState
    snapshot: Optional[GlobalSnapshot] = None
    output_path: Optional[Path] = None
    brands: List[str] = field(default_factory=list)
    records: int = 0
    validation: Optional[ValidationResult] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


class SnapshotOrchestrator:
    """
    Runs the brand fan-out and writes the merged snapshot.

    Each brand's record subset goes to its own worker as an immutable
    payload; results are placed into the brand map by brand code, so the
    merged document does not depend on completion order.

    Example:
        orchestrator = SnapshotOrchestrator(executor="thread")
        result = orchestrator.run(records, reference=datetime(2024, 7, 1))
    """

    def __init__(
        self,
        top_n: Optional[int] = None,
        customer_list_limit: Optional[int] = None,
        max_workers: Optional[int] = None,
        worker_timeout: Optional[float] = None,
        executor: Optional[str] = None,
        pretty: Optional[bool] = None,
        worker: BrandWorker = run_brand_analytics,
    ):
        cfg = settings.snapshot
        self.top_n = top_n or cfg.top_n
        self.customer_list_limit = cfg.customer_list_limit if customer_list_limit is None else customer_list_limit
        self.max_workers = max_workers or cfg.max_workers or os.cpu_count() or 1
        self.worker_timeout = worker_timeout if worker_timeout is not None else cfg.worker_timeout_seconds
        self.executor_kind = ExecutorKind(executor or cfg.executor)
        self.pretty = cfg.pretty_print if pretty is None else pretty
        self.worker = worker
        self.state = PipelineState.IDLE

    def _transition(self, state: PipelineState, **context) -> None:
        logger.info(f"Snapshot run {self.state.value} -> {state.value}", **context)
        self.state = state

    def _create_executor(self, workers: int) -> Optional[ProcessPoolExecutor]:
        if self.executor_kind == ExecutorKind.THREAD:
            return None
        return ProcessPoolExecutor(max_workers=workers)

    def check_quality(self, records: Sequence[SalesRecord]) -> ValidationResult:
        """Data quality report over the decoded records; logged, never fatal"""
        result = create_sales_validator().validate(build_sales_frame(records))
        for check in result.failed():
            logger.warning(
                "Data quality check failed",
                check=check.name,
                failed_rows=check.failed_rows,
                total_rows=check.total_rows,
            )
        return result

    def build_payloads(
        self,
        records: Sequence[SalesRecord],
        brands: Sequence[BrandPerformance],
        demographics: DemographicsLookup,
        reference: datetime,
    ) -> List[BrandWorkPayload]:
        """One payload per brand: its own code's records plus store-prefix matches"""
        groups = group_records(records)
        payloads = []
        for brand in brands:
            indexes = groups.brand_subset(brand.brand_code, brand.brand_name)
            payloads.append(
                BrandWorkPayload(
                    brand_code=brand.brand_code,
                    records=select_records(records, indexes),
                    demographics=demographics,
                    reference=reference,
                    top_n=self.top_n,
                )
            )
        return payloads

    def _start_thread(self, loop: asyncio.AbstractEventLoop, payload: BrandWorkPayload) -> asyncio.Future:
        """Run one brand on a daemon thread and deliver its outcome to ``loop``"""
        future = loop.create_future()

        def deliver(result, error):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def target():
            result, error = None, None
            try:
                result = self.worker(payload)
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(deliver, result, error)
            except RuntimeError:
                # loop closed after the run failed
                logger.warning("Brand worker finished after its run ended", brand=payload.brand_code)

        threading.Thread(target=target, name=f"brand-{payload.brand_code}", daemon=True).start()
        return future

    async def _run_worker(
        self,
        loop: asyncio.AbstractEventLoop,
        pool: Optional[ProcessPoolExecutor],
        slots: asyncio.Semaphore,
        payload: BrandWorkPayload,
    ) -> BrandAnalytics:
        async with slots:
            if pool is None:
                work = self._start_thread(loop, payload)
            else:
                work = loop.run_in_executor(pool, self.worker, payload)
            try:
                return await asyncio.wait_for(work, timeout=self.worker_timeout)
            except asyncio.TimeoutError as e:
                raise BrandAnalyticsError(payload.brand_code, f"timed out after {self.worker_timeout}s") from e
            except BrandAnalyticsError:
                raise
            except Exception as e:
                raise BrandAnalyticsError(payload.brand_code, f"{type(e).__name__}: {e}") from e

    def _abort(self, pool: Optional[ProcessPoolExecutor]) -> None:
        """Stop whatever is still running after a brand failed"""
        if pool is None:
            running = [t.name for t in threading.enumerate() if t.daemon and t.name.startswith("brand-")]
            if running:
                logger.warning("Abandoning running brand threads", threads=running)
            return

        # shutdown() clears the process table and its exit hook joins busy workers
        processes = list((pool._processes or {}).values())
        for process in processes:
            if process.is_alive():
                process.terminate()
        pool.shutdown(wait=False, cancel_futures=True)
        logger.warning("Terminated brand worker processes", processes=len(processes))

    async def dispatch(self, payloads: Sequence[BrandWorkPayload]) -> Dict[str, BrandAnalytics]:
        """
        Run every brand payload concurrently and wait for all of them.

        The first failure cancels the brands still queued, stops the ones
        still running and is re-raised as BrandAnalyticsError.
        """
        if not payloads:
            return {}

        loop = asyncio.get_running_loop()
        workers = max(1, min(self.max_workers, len(payloads)))
        slots = asyncio.Semaphore(workers)
        pool = self._create_executor(workers)
        tasks = [asyncio.ensure_future(self._run_worker(loop, pool, slots, p)) for p in payloads]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            self._abort(pool)
            raise
        if pool is not None:
            pool.shutdown(wait=True)

        return {payload.brand_code: result for payload, result in zip(payloads, results)}

    async def build_snapshot(
        self,
        records: Sequence[SalesRecord],
        demographics: Optional[DemographicsLookup] = None,
        reference: Optional[datetime] = None,
    ) -> GlobalSnapshot:
        """Group, dispatch and merge; no file is touched"""
        reference = reference or datetime.now()
        demographics = demographics or {}

        df = build_sales_frame(records)
        brands = get_brand_performance(df)
        payloads = self.build_payloads(records, brands, demographics, reference)
        self._transition(PipelineState.GROUPED, brands=len(payloads), records=len(records))

        self._transition(PipelineState.DISPATCHED, executor=self.executor_kind.value, max_workers=self.max_workers)
        by_brand_unordered = await self.dispatch(payloads)

        # brand map follows brand performance order regardless of completion order
        by_brand = {brand.brand_code: by_brand_unordered[brand.brand_code] for brand in brands}

        chain = compute_analytics(df, demographics, reference, self.top_n)
        customer_list = build_customer_list(df, demographics, reference, self.customer_list_limit)
        kept = {c.member_id for c in customer_list}
        purchases = get_customer_purchases(records, kept)

        snapshot = GlobalSnapshot(
            **dict(chain),
            generated_at=reference,
            brand_performance=brands,
            by_brand=by_brand,
            customer_list=customer_list,
            customer_purchases=purchases,
        )
        self._transition(PipelineState.MERGED, customers=len(customer_list))
        return snapshot

    async def run_async(
        self,
        records: Sequence[SalesRecord],
        demographics: Optional[DemographicsLookup] = None,
        reference: Optional[datetime] = None,
        output_path: Optional[Union[str, Path]] = None,
    ) -> SnapshotResult:
        """
        Build the snapshot and write it to ``output_path``.

        A failing run re-raises after recording the failed state; the
        previous snapshot file, if any, is left untouched.
        """
        lake = settings.data_lake
        output_path = Path(output_path or lake.output_dir / lake.snapshot_file)
        result = SnapshotResult(state=PipelineState.IDLE, records=len(records))
        self.state = PipelineState.IDLE
        bind_run_context(run_id=result.started_at.strftime("%Y%m%dT%H%M%S%f"), executor=self.executor_kind.value)

        logger.info("Starting snapshot run", records=len(records), output=str(output_path))

        try:
            result.validation = self.check_quality(records)
            snapshot = await self.build_snapshot(records, demographics, reference)
            write_snapshot(snapshot, output_path, pretty=self.pretty)
            self._transition(PipelineState.WRITTEN, file=str(output_path))
        except Exception as e:
            self._transition(PipelineState.FAILED, error=str(e))
            raise

        result.state = self.state
        result.snapshot = snapshot
        result.output_path = output_path
        result.brands = list(snapshot.by_brand)
        result.completed_at = datetime.now()

        logger.info(
            "Snapshot run completed",
            brands=len(result.brands),
            duration_seconds=result.duration_seconds,
        )
        return result

    def run(
        self,
        records: Sequence[SalesRecord],
        demographics: Optional[DemographicsLookup] = None,
        reference: Optional[datetime] = None,
        output_path: Optional[Union[str, Path]] = None,
    ) -> SnapshotResult:
        return asyncio.run(self.run_async(records, demographics, reference, output_path))
