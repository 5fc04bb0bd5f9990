"""
Sales Anonymizer

Two-pass deterministic pseudonymization of the brand sales exports:

1. collect distinct member-id prefixes, store names and associate names
   across every input file
2. build the mapping tables once, then rewrite every row through them into a
   single anonymized CSV

The member-id prefix map is persisted next to the published artifacts so the
demographic join can reproduce the same ids.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

import pandas as pd
import structlog

from sales_snapshot.config import get_settings
from sales_snapshot.exceptions import MissingInputError, require_files
from sales_snapshot.ingestion import SALES_HEADERS, SalesColumns, iter_raw_rows
from sales_snapshot.storage import atomic_output, read_json, write_json
from .mappings import (
    ANONYMIZED_ONLINE_STORE_NAME,
    FAMILY_NAMES,
    GIVEN_NAMES,
    MEMBER_ID_REPLACEMENT_PREFIXES,
    PHYSICAL_STORE_NAME_POOL,
    generalize_product_name,
    is_online_store,
    resolve_brand,
)

logger = structlog.get_logger(__name__)
settings = get_settings()

PathLike = Union[str, Path]

MEMBER_PREFIX_LENGTH = 2


@dataclass
class DistinctValues:
    """Raw values observed in the collect pass"""
    member_prefixes: Set[str] = field(default_factory=set)
    store_names: Set[str] = field(default_factory=set)
    associate_names: Set[str] = field(default_factory=set)
    rows: int = 0

    def observe(self, row: Mapping[str, Any]) -> None:
        self.rows += 1
        member_id = _cell(row, SalesColumns.MEMBER_ID)
        if len(member_id) >= MEMBER_PREFIX_LENGTH:
            self.member_prefixes.add(member_id[:MEMBER_PREFIX_LENGTH])
        store = _cell(row, SalesColumns.STORE_NAME)
        if store:
            self.store_names.add(store)
        associate = _cell(row, SalesColumns.ASSOCIATE_NAME)
        if associate:
            self.associate_names.add(associate)


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


def collect_distinct_values(paths: Iterable[PathLike], chunk_size: int = None) -> DistinctValues:
    """Pass 1: scan every file without rewriting anything"""
    values = DistinctValues()
    for path in paths:
        for row in iter_raw_rows(path, chunk_size=chunk_size):
            values.observe(row)
    return values


def build_member_prefix_map(prefixes: Iterable[str]) -> Dict[str, str]:
    """Sorted prefixes take the replacement pool in order, then ``X<index>``"""
    prefix_map = {}
    for i, prefix in enumerate(sorted(set(prefixes))):
        if i < len(MEMBER_ID_REPLACEMENT_PREFIXES):
            prefix_map[prefix] = MEMBER_ID_REPLACEMENT_PREFIXES[i]
        else:
            prefix_map[prefix] = f"X{i}"
    return prefix_map


def build_store_map(store_names: Iterable[str]) -> Dict[str, str]:
    """Online stores collapse to one name; physical stores cycle through the pool"""
    store_map = {}
    physical = []
    for name in set(store_names):
        if is_online_store(name):
            store_map[name] = ANONYMIZED_ONLINE_STORE_NAME
        else:
            physical.append(name)
    for i, name in enumerate(sorted(physical)):
        store_map[name] = PHYSICAL_STORE_NAME_POOL[i % len(PHYSICAL_STORE_NAME_POOL)]
    return store_map


def build_associate_map(associate_names: Iterable[str]) -> Dict[str, str]:
    associate_map = {}
    families = len(FAMILY_NAMES)
    for i, name in enumerate(sorted(set(associate_names))):
        family = FAMILY_NAMES[i % families]
        given = GIVEN_NAMES[(i // families) % len(GIVEN_NAMES)]
        associate_map[name] = f"{family} {given}"
    return associate_map


def pseudonymize_member_id(member_id: str, prefix_map: Mapping[str, str]) -> str:
    """Swap the two-character prefix, keeping the suffix; unknown prefixes pass through"""
    mid = (member_id or "").strip()
    if len(mid) < MEMBER_PREFIX_LENGTH:
        return mid
    replacement = prefix_map.get(mid[:MEMBER_PREFIX_LENGTH])
    if replacement is None:
        return mid
    return replacement + mid[MEMBER_PREFIX_LENGTH:]


@dataclass(frozen=True)
class PseudonymizationTables:
    """
    Immutable mapping tables for one pipeline run.

    Built once from the collect pass and passed explicitly into every
    rewrite, so independent runs never share state.
    """
    member_prefix_map: Mapping[str, str]
    store_map: Mapping[str, str]
    associate_map: Mapping[str, str]

    @classmethod
    def build(cls, values: DistinctValues) -> "PseudonymizationTables":
        return cls(
            member_prefix_map=build_member_prefix_map(values.member_prefixes),
            store_map=build_store_map(values.store_names),
            associate_map=build_associate_map(values.associate_names),
        )

    def pseudonymize_member_id(self, member_id: str) -> str:
        return pseudonymize_member_id(member_id, self.member_prefix_map)

    def rewrite_row(self, row: Mapping[str, Any]) -> Dict[str, str]:
        """
        Pass 2 rewrite of one raw row.

        Brand resolution tries the store brand code, then the store brand
        name; failing both, the store brand name then the product brand
        name. A resolved brand overwrites both the store-brand and the
        product-brand columns so they never disagree.
        """
        out = {header: _raw(row, header) for header in SALES_HEADERS}

        member_id = _cell(row, SalesColumns.MEMBER_ID)
        if len(member_id) >= MEMBER_PREFIX_LENGTH:
            replacement = self.member_prefix_map.get(member_id[:MEMBER_PREFIX_LENGTH])
            if replacement is not None:
                out[SalesColumns.MEMBER_ID] = replacement + member_id[MEMBER_PREFIX_LENGTH:]

        store_brand_code = _cell(row, SalesColumns.STORE_BRAND_CODE)
        store_brand_name = _cell(row, SalesColumns.STORE_BRAND_NAME)
        product_brand_name = _cell(row, SalesColumns.PRODUCT_BRAND_NAME)
        brand = (
            resolve_brand(store_brand_code)
            or resolve_brand(store_brand_name)
            or resolve_brand(product_brand_name)
        )
        if brand is not None:
            out[SalesColumns.STORE_BRAND_CODE] = brand.code
            out[SalesColumns.STORE_BRAND_NAME] = brand.name
            out[SalesColumns.PRODUCT_BRAND_CODE] = brand.code
            out[SalesColumns.PRODUCT_BRAND_NAME] = brand.name

        store = _cell(row, SalesColumns.STORE_NAME)
        if store in self.store_map:
            out[SalesColumns.STORE_NAME] = self.store_map[store]

        associate = _cell(row, SalesColumns.ASSOCIATE_NAME)
        if associate in self.associate_map:
            out[SalesColumns.ASSOCIATE_NAME] = self.associate_map[associate]

        product_name = _cell(row, SalesColumns.PRODUCT_NAME)
        if product_name:
            out[SalesColumns.PRODUCT_NAME] = generalize_product_name(product_name)

        return out


def _raw(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value)


def save_prefix_map(prefix_map: Mapping[str, str], path: PathLike) -> Path:
    return write_json(path, dict(sorted(prefix_map.items())), pretty=True)


def load_prefix_map(path: PathLike) -> Dict[str, str]:
    """Load the persisted prefix map; its absence is a precondition failure"""
    if not Path(path).exists():
        raise MissingInputError([path], "Run the sales anonymizer first")
    return {str(k): str(v) for k, v in read_json(path).items()}


@dataclass
class AnonymizeResult:
    """Result of an anonymization run"""
    input_files: List[str]
    output_path: str
    prefix_map_path: str
    rows_written: int
    member_prefixes: int
    store_names: int
    associate_names: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


class SalesAnonymizer:
    """
    Rewrites brand sales exports into one pseudonymized CSV.

    Example:
        anonymizer = SalesAnonymizer()
        result = anonymizer.run(["mark_sales_md.csv", "mark_sales_EL.csv"])
    """

    def __init__(self, chunk_size: Optional[int] = None, encoding: Optional[str] = None):
        self.chunk_size = chunk_size or settings.data_lake.chunk_size
        self.encoding = encoding or settings.data_lake.encoding

    def discover_inputs(self, raw_dir: Optional[PathLike] = None) -> List[Path]:
        raw_dir = Path(raw_dir or settings.data_lake.raw_dir)
        anonymized_name = settings.data_lake.anonymized_sales_file
        return sorted(
            p for p in raw_dir.glob(settings.data_lake.sales_pattern)
            if p.name != anonymized_name
        )

    def build_tables(self, input_paths: Iterable[PathLike]) -> PseudonymizationTables:
        values = collect_distinct_values(input_paths, chunk_size=self.chunk_size)
        logger.info(
            "Collected distinct values",
            rows=values.rows,
            member_prefixes=sorted(values.member_prefixes),
            store_names=len(values.store_names),
            associate_names=len(values.associate_names),
        )
        return PseudonymizationTables.build(values)

    def rewrite(
        self,
        input_paths: Iterable[PathLike],
        tables: PseudonymizationTables,
        output_path: PathLike,
    ) -> int:
        """Pass 2: stream every input through the tables into ``output_path``"""
        rows_written = 0
        with atomic_output(output_path) as tmp_path:
            pd.DataFrame(columns=SALES_HEADERS).to_csv(
                tmp_path, index=False, encoding="utf-8", lineterminator="\n"
            )
            for path in input_paths:
                with pd.read_csv(
                    path,
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                    encoding=self.encoding,
                    chunksize=self.chunk_size,
                ) as reader:
                    for chunk in reader:
                        rewritten = [tables.rewrite_row(row) for row in chunk.to_dict("records")]
                        pd.DataFrame(rewritten, columns=SALES_HEADERS).to_csv(
                            tmp_path,
                            mode="a",
                            header=False,
                            index=False,
                            encoding="utf-8",
                            lineterminator="\n",
                        )
                        rows_written += len(rewritten)
        return rows_written

    def run(
        self,
        input_paths: Optional[Iterable[PathLike]] = None,
        output_path: Optional[PathLike] = None,
        prefix_map_path: Optional[PathLike] = None,
    ) -> AnonymizeResult:
        started_at = datetime.now()
        input_paths = list(input_paths) if input_paths is not None else self.discover_inputs()
        if not input_paths:
            raise MissingInputError(
                [Path(settings.data_lake.raw_dir) / settings.data_lake.sales_pattern],
                "No brand sales exports found",
            )
        require_files(input_paths, "Brand sales exports are required before anonymizing")

        output_path = Path(output_path or settings.data_lake.raw_dir / settings.data_lake.anonymized_sales_file)
        prefix_map_path = Path(prefix_map_path or settings.data_lake.output_dir / settings.data_lake.prefix_map_file)

        logger.info(f"Anonymizing {len(input_paths)} sales files", output=str(output_path))

        tables = self.build_tables(input_paths)
        save_prefix_map(tables.member_prefix_map, prefix_map_path)
        rows_written = self.rewrite(input_paths, tables, output_path)

        completed_at = datetime.now()
        result = AnonymizeResult(
            input_files=[str(p) for p in input_paths],
            output_path=str(output_path),
            prefix_map_path=str(prefix_map_path),
            rows_written=rows_written,
            member_prefixes=len(tables.member_prefix_map),
            store_names=len(tables.store_map),
            associate_names=len(tables.associate_map),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        )
        logger.info(
            "Anonymization complete",
            rows=rows_written,
            output=str(output_path),
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result


def anonymize_sales(
    input_paths: Optional[Iterable[PathLike]] = None,
    output_path: Optional[PathLike] = None,
    prefix_map_path: Optional[PathLike] = None,
) -> AnonymizeResult:
    """Convenience function for a default-configured anonymization run"""
    return SalesAnonymizer().run(input_paths, output_path, prefix_map_path)
