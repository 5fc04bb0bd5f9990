"""
Sales CSV Reader

Decodes POS sales exports into SalesRecord values.

Two modes with identical output for identical input:
- in-memory: whole file read with Polars, every column as a string
- streaming: fixed-size chunks read with Pandas, constant memory
"""

import codecs
import io
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Union

import pandas as pd
import polars as pl
import structlog

from sales_snapshot.config import get_settings
from sales_snapshot.exceptions import require_files
from .records import SalesRecord, parse_sales_row

logger = structlog.get_logger(__name__)
settings = get_settings()

PathLike = Union[str, Path]


def iter_raw_rows(
    file_path: PathLike,
    chunk_size: int = None,
    encoding: str = None,
) -> Iterator[Dict[str, str]]:
    """
    Stream raw rows from a delimited file as header -> string dicts.

    Empty cells come back as empty strings; nothing is type-inferred.
    """
    chunk_size = chunk_size or settings.data_lake.chunk_size
    encoding = encoding or settings.data_lake.encoding

    with pd.read_csv(
        file_path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        encoding=encoding,
        chunksize=chunk_size,
    ) as reader:
        for chunk in reader:
            yield from chunk.to_dict("records")


def stream_sales_csv(
    file_path: PathLike,
    chunk_size: int = None,
    encoding: str = None,
) -> Iterator[SalesRecord]:
    """Stream decoded records, dropping rows without member id or purchase date"""
    require_files([file_path])

    total = 0
    kept = 0
    for row in iter_raw_rows(file_path, chunk_size=chunk_size, encoding=encoding):
        total += 1
        record = parse_sales_row(row)
        if record is None:
            continue
        kept += 1
        yield record

    logger.info(
        "Streamed sales file",
        file=str(file_path),
        rows=total,
        records=kept,
        dropped=total - kept,
    )


def read_sales_csv(source: PathLike, encoding: str = None) -> List[SalesRecord]:
    """Read a whole sales export into memory"""
    require_files([source])
    encoding = encoding or settings.data_lake.encoding

    # Polars only decodes UTF-8; other exports (cp932 from the POS) are transcoded first
    if codecs.lookup(encoding).name == "utf-8":
        data = source
    else:
        data = io.BytesIO(Path(source).read_bytes().decode(encoding).encode("utf-8"))

    df = pl.read_csv(
        data,
        infer_schema_length=0,
        encoding="utf8",
    )
    records = [r for r in (parse_sales_row(row) for row in df.iter_rows(named=True)) if r is not None]

    logger.info(
        "Read sales file",
        file=str(source),
        rows=df.height,
        records=len(records),
        dropped=df.height - len(records),
    )
    return records


def load_sales(
    paths: Iterable[PathLike],
    streaming: bool = True,
    encoding: str = None,
) -> List[SalesRecord]:
    """Decode several exports in order into one record list"""
    paths = list(paths)
    require_files(paths)

    records: List[SalesRecord] = []
    for path in paths:
        if streaming:
            records.extend(stream_sales_csv(path, encoding=encoding))
        else:
            records.extend(read_sales_csv(path, encoding=encoding))
    return records
