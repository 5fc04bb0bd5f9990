"""
Member Demographics Join

Joins the membership export with the users export on 会員ID and keys the
result by the pseudonymized member id, so it lines up with the anonymized
sales CSV.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Mapping, Optional, Set, Union

import structlog

from sales_snapshot.config import get_settings
from sales_snapshot.exceptions import require_files
from sales_snapshot.ingestion import SalesColumns, iter_raw_rows
from sales_snapshot.storage import read_json, write_json
from .anonymizer import load_prefix_map, pseudonymize_member_id

logger = structlog.get_logger(__name__)
settings = get_settings()

PathLike = Union[str, Path]

BIRTHDATE_COLUMN = "生年月日"
GENDER_COLUMN = "性別"


@dataclass(frozen=True)
class MemberDemographics:
    birthdate: str = ""
    gender_code: str = ""

    @property
    def gender(self) -> str:
        """Female / Male / Unknown from the POS gender code"""
        if self.gender_code == "1":
            return "Female"
        if self.gender_code == "2":
            return "Male"
        return "Unknown"

    def age_on(self, reference: date) -> Optional[int]:
        """Completed years at ``reference``; None for a missing, malformed or future birthdate"""
        born = parse_birthdate(self.birthdate)
        if born is None:
            return None
        age = reference.year - born.year
        if (reference.month, reference.day) < (born.month, born.day):
            age -= 1
        return age if age >= 0 else None

    def to_json(self) -> Dict[str, str]:
        return {"birthdate": self.birthdate, "genderCode": self.gender_code}


DemographicsLookup = Dict[str, MemberDemographics]


def parse_birthdate(value: str) -> Optional[date]:
    text = (value or "").strip().replace("/", "-")
    try:
        year, month, day = (int(part) for part in text[:10].split("-"))
        return date(year, month, day)
    except ValueError:
        return None


def load_membership_ids(path: PathLike) -> Set[str]:
    ids = set()
    for row in iter_raw_rows(path):
        member_id = (row.get(SalesColumns.MEMBER_ID) or "").strip()
        if member_id:
            ids.add(member_id)
    return ids


def build_demographics(
    users_path: PathLike,
    membership_ids: Set[str],
    prefix_map: Mapping[str, str],
) -> DemographicsLookup:
    """Users present in the membership set, keyed by pseudonymized id"""
    lookup: DemographicsLookup = {}
    for row in iter_raw_rows(users_path):
        member_id = (row.get(SalesColumns.MEMBER_ID) or "").strip()
        if not member_id or member_id not in membership_ids:
            continue
        lookup[pseudonymize_member_id(member_id, prefix_map)] = MemberDemographics(
            birthdate=(row.get(BIRTHDATE_COLUMN) or "").strip(),
            gender_code=(row.get(GENDER_COLUMN) or "").strip(),
        )
    return lookup


def build_member_demographics(
    membership_path: Optional[PathLike] = None,
    users_path: Optional[PathLike] = None,
    prefix_map_path: Optional[PathLike] = None,
    output_path: Optional[PathLike] = None,
) -> Path:
    """
    Build and persist the demographic lookup.

    The prefix map written by the anonymizer and both exports must exist;
    otherwise nothing is written.
    """
    lake = settings.data_lake
    membership_path = Path(membership_path or lake.raw_dir / lake.membership_file)
    users_path = Path(users_path or lake.raw_dir / lake.users_file)
    prefix_map_path = Path(prefix_map_path or lake.output_dir / lake.prefix_map_file)
    output_path = Path(output_path or lake.output_dir / lake.demographics_file)

    require_files([membership_path, users_path], "Membership and users exports are required")
    prefix_map = load_prefix_map(prefix_map_path)

    membership_ids = load_membership_ids(membership_path)
    logger.info("Loaded membership ids", count=len(membership_ids))

    lookup = build_demographics(users_path, membership_ids, prefix_map)
    logger.info("Built member demographics", members=len(lookup))

    return write_json(output_path, {k: v.to_json() for k, v in lookup.items()}, pretty=True)


def load_demographics(path: Optional[PathLike] = None) -> DemographicsLookup:
    """
    Load the demographic lookup if present.

    Demographics are optional for the snapshot: a missing file yields an
    empty lookup and age/gender segments fall back to hashed buckets.
    """
    path = Path(path or settings.data_lake.output_dir / settings.data_lake.demographics_file)
    if not path.exists():
        logger.warning("No demographics file, using hashed age/gender buckets", file=str(path))
        return {}
    raw = read_json(path)
    return {
        str(member_id): MemberDemographics(
            birthdate=str(entry.get("birthdate") or ""),
            gender_code=str(entry.get("genderCode") or ""),
        )
        for member_id, entry in raw.items()
    }
