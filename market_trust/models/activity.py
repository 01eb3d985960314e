# market_trust/models/activity.py

"""Activity ranking and interaction models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ActivityBand(str, Enum):
    """Qualitative demand band shown on supplier dashboards."""

    NEW = "new"
    GROWING = "growing"
    ACTIVE = "active"
    HIGH = "high"


@dataclass
class ActivityRank:
    """Band per supplier over one rolling interaction window."""

    bands: dict[str, ActivityBand] = field(
        default_factory=lambda: dict[str, ActivityBand]()
    )
    total_interactions: int = 0
    computed_at: datetime | None = None


@dataclass(frozen=True)
class InteractionCount:
    """Interaction total for one supplier within one ZIP."""

    supplier_id: str
    zip_code: str
    count: int


@dataclass
class SupplierDemand:
    """30-day interaction breakdown for a single supplier."""

    supplier_id: str
    clicks: int = 0
    calls: int = 0
    websites: int = 0
