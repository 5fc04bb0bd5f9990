"""
Prefect Workflow Orchestration - Sales Snapshot

Batch flow that chains the snapshot stages:
- Pseudonymize the raw brand exports
- Join member demographics (optional)
- Precompute and publish the analytics snapshot
"""

from datetime import datetime
from typing import Optional

from prefect import flow, task, get_run_logger

from sales_snapshot.config import get_settings
from sales_snapshot.config.logging import configure_logging
from sales_snapshot.exceptions import MissingInputError
from sales_snapshot.pipeline import SnapshotOrchestrator, load_snapshot_inputs
from sales_snapshot.transformation import SalesAnonymizer, build_member_demographics

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="anonymize_sales",
    description="Pseudonymize raw brand sales exports",
    retries=1,
    retry_delay_seconds=60,
)
def anonymize_sales_task(raw_dir: Optional[str] = None) -> dict:
    """Rewrite every raw export into the anonymized sales CSV"""
    logger = get_run_logger()

    anonymizer = SalesAnonymizer()
    inputs = anonymizer.discover_inputs(raw_dir) if raw_dir else None
    result = anonymizer.run(input_paths=inputs)

    logger.info(
        f"Anonymized {result.rows_written} rows from {len(result.input_files)} files "
        f"in {result.duration_seconds:.1f}s"
    )
    return {
        "output_path": str(result.output_path),
        "prefix_map_path": str(result.prefix_map_path),
        "rows_written": result.rows_written,
    }


@task(
    name="build_demographics",
    description="Join membership and users exports on pseudonymized member id",
)
def build_demographics_task(required: bool = False) -> Optional[str]:
    """Build the demographic lookup; skipped when the exports are absent unless required"""
    logger = get_run_logger()

    try:
        path = build_member_demographics()
    except MissingInputError as e:
        if required:
            raise
        logger.warning(f"Skipping demographics: {e}")
        return None

    logger.info(f"Member demographics written to {path}")
    return str(path)


@task(
    name="build_snapshot",
    description="Precompute the analytics snapshot",
    retries=1,
    retry_delay_seconds=120,
)
async def build_snapshot_task(
    sales_path: str,
    demographics_path: Optional[str] = None,
    reference: Optional[datetime] = None,
) -> dict:
    """Run the brand-parallel orchestrator over the anonymized sales"""
    logger = get_run_logger()

    # no path means the demographics step was skipped this run
    records, demographics = load_snapshot_inputs(
        sales_path,
        demographics_path,
        skip_demographics=demographics_path is None,
    )

    orchestrator = SnapshotOrchestrator()
    result = await orchestrator.run_async(records, demographics, reference=reference)

    logger.info(
        f"Snapshot {result.state.value}: {len(result.brands)} brands, "
        f"{result.records} records in {result.duration_seconds:.1f}s"
    )
    return {
        "state": result.state.value,
        "output_path": str(result.output_path),
        "brands": result.brands,
        "records": result.records,
        "data_quality": result.validation.status.value if result.validation else None,
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="sales_snapshot_etl",
    description="Anonymize POS sales and publish the precomputed analytics snapshot",
)
async def sales_snapshot_etl(
    raw_dir: Optional[str] = None,
    require_demographics: bool = False,
    reference: Optional[datetime] = None,
) -> dict:
    """
    Full snapshot pipeline.

    Steps:
    1. Pseudonymize the raw exports (writes the prefix map)
    2. Build member demographics from the prefix map
    3. Build and write the snapshot
    """
    logger = get_run_logger()
    reference = reference or datetime.now()

    logger.info(f"Starting sales snapshot ETL at {reference.isoformat()}")

    results = {"reference": reference.isoformat(), "steps": {}}

    try:
        anonymized = anonymize_sales_task(raw_dir)
        results["steps"]["anonymize"] = anonymized

        demographics_path = build_demographics_task(require_demographics)
        results["steps"]["demographics"] = demographics_path

        snapshot = await build_snapshot_task(
            anonymized["output_path"],
            demographics_path,
            reference,
        )
        results["steps"]["snapshot"] = snapshot
        results["status"] = "success"

    except Exception as e:
        logger.error(f"Snapshot ETL failed: {e}")
        results["status"] = "failed"
        results["error"] = str(e)
        raise

    return results


if __name__ == "__main__":
    import asyncio

    configure_logging()
    asyncio.run(sales_snapshot_etl())
