"""
Snapshot Writer

Persists the merged GlobalSnapshot and wires the anonymized sales CSV,
the demographic lookup and the orchestrator together for batch runs.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

import structlog

from sales_snapshot.analytics import GlobalSnapshot
from sales_snapshot.config import get_settings
from sales_snapshot.exceptions import require_files
from sales_snapshot.ingestion import SalesRecord, load_sales
from sales_snapshot.storage import read_json, write_json
from sales_snapshot.transformation.demographics import DemographicsLookup, load_demographics

if TYPE_CHECKING:
    from .orchestrator import SnapshotResult

logger = structlog.get_logger(__name__)
settings = get_settings()

PathLike = Union[str, Path]


def write_snapshot(snapshot: GlobalSnapshot, path: PathLike, pretty: bool = False) -> Path:
    """Write the snapshot document atomically with camelCase keys"""
    return write_json(path, snapshot.to_json_dict(), pretty=pretty)


def read_snapshot(path: PathLike) -> GlobalSnapshot:
    return GlobalSnapshot.model_validate(read_json(path))


def load_snapshot_inputs(
    sales_path: Optional[PathLike] = None,
    demographics_path: Optional[PathLike] = None,
    skip_demographics: bool = False,
) -> Tuple[List[SalesRecord], DemographicsLookup]:
    """
    Decode the anonymized sales CSV and the demographic lookup.

    The CSV must exist (run the anonymizer first). With
    ``skip_demographics`` the lookup is empty whatever sits on disk, so a
    lookup left over from an earlier run is never joined; otherwise a
    missing lookup falls back to hashed age/gender buckets.
    """
    lake = settings.data_lake
    sales_path = Path(sales_path or lake.raw_dir / lake.anonymized_sales_file)
    require_files([sales_path], "Run the sales anonymizer first")

    records = load_sales([sales_path])
    if skip_demographics:
        demographics: DemographicsLookup = {}
    else:
        demographics = load_demographics(demographics_path)

    logger.info(
        "Loaded snapshot inputs",
        records=len(records),
        demographics=len(demographics),
        demographics_skipped=skip_demographics,
    )
    return records, demographics


def run_snapshot(
    sales_path: Optional[PathLike] = None,
    demographics_path: Optional[PathLike] = None,
    output_path: Optional[PathLike] = None,
    reference: Optional[datetime] = None,
    skip_demographics: bool = False,
    **orchestrator_options,
) -> "SnapshotResult":
    """Build the snapshot from the anonymized sales CSV and write it"""
    from .orchestrator import SnapshotOrchestrator

    records, demographics = load_snapshot_inputs(sales_path, demographics_path, skip_demographics)

    orchestrator = SnapshotOrchestrator(**orchestrator_options)
    return orchestrator.run(records, demographics, reference=reference, output_path=output_path)
