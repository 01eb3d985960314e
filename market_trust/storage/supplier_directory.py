# market_trust/storage/supplier_directory.py

"""Loads supplier service-area declarations from a JSON directory file."""

import json
import logging
from pathlib import Path
from typing import Any, cast

from market_trust.models.supplier_profile import SupplierLocationProfile

logger = logging.getLogger("market_trust.directory")


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    items = cast(list[object], value)
    return [str(v) for v in items if v is not None]


def parse_profile(entry: dict[str, Any]) -> SupplierLocationProfile:
    """Build a profile from one directory entry.

    Expected keys: ``id``, ``state``, optional ``name``, ``counties``
    and ``zip_codes`` (``postal_codes_served`` is accepted as an alias).
    """
    supplier_id = str(entry.get("id", "")).strip()
    if not supplier_id:
        raise ValueError("Directory entry is missing an id")
    zips = entry.get("zip_codes", entry.get("postal_codes_served", []))
    return SupplierLocationProfile(
        supplier_id=supplier_id,
        name=str(entry.get("name", "")),
        state=str(entry.get("state", "")),
        counties=_str_list(entry.get("counties", [])),
        zip_codes=_str_list(zips),
    )


def load_profiles(path: Path) -> list[SupplierLocationProfile]:
    """Read every supplier entry from a JSON array file.

    Entries that are not objects or lack an id are skipped with a
    warning; an unreadable file raises.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")

    profiles: list[SupplierLocationProfile] = []
    skipped = 0
    for raw in cast(list[object], data):
        if not isinstance(raw, dict):
            skipped += 1
            continue
        try:
            profiles.append(parse_profile(cast(dict[str, Any], raw)))
        except ValueError as exc:
            logger.warning("Skipping directory entry: %s", exc)
            skipped += 1

    logger.info(
        "Loaded %d supplier profiles from %s (%d skipped)",
        len(profiles),
        path,
        skipped,
    )
    return profiles

