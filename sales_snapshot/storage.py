"""
Artifact Storage

Every artifact is written to a temporary file next to its destination and
renamed into place, so readers see either the previous file or the complete
new one.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Union

import structlog

logger = structlog.get_logger(__name__)


@contextmanager
def atomic_output(path: Union[str, Path]) -> Iterator[Path]:
    """Yield a temporary path that replaces ``path`` only if the block succeeds"""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_json(path: Union[str, Path], payload: Any, pretty: bool = False) -> Path:
    """Serialize ``payload`` as UTF-8 JSON atomically"""
    with atomic_output(path) as tmp_path:
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(
                payload,
                fh,
                ensure_ascii=False,
                indent=2 if pretty else None,
                separators=None if pretty else (",", ":"),
            )
    logger.info("Wrote JSON artifact", file=str(path), pretty=pretty)
    return Path(path)


def read_json(path: Union[str, Path]) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)
