"""Data models for datasets, change events and notifications."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

MEDICATIONS = "medications"
UNMET_NEEDS = "unmet_needs"
PHARMA_TACTICS = "pharma_tactics"

DATASET_KINDS = (MEDICATIONS, UNMET_NEEDS, PHARMA_TACTICS)

Row = Dict[str, Any]


@dataclass(frozen=True)
class DatasetTable:
    """Where one dataset lives in the backend and how to read its rows."""
    kind: str
    table: str
    key: str          # primary identifier, also the descending sort key
    label: str        # human name shown in notifications
    lab_field: str
    drug_field: str


DATASET_TABLES: Dict[str, DatasetTable] = {
    MEDICATIONS: DatasetTable(
        kind=MEDICATIONS,
        table="DrugDealer_table",
        key="ID_NUM",
        label="DrugDealer",
        lab_field="nombre_lab",
        drug_field="nombre_del_farmaco",
    ),
    UNMET_NEEDS: DatasetTable(
        kind=UNMET_NEEDS,
        table="UnmetNeeds_table",
        key="id_UN_table",
        label="Unmet Needs",
        lab_field="lab",
        drug_field="farmaco",
    ),
    PHARMA_TACTICS: DatasetTable(
        kind=PHARMA_TACTICS,
        table="PharmaTactics_table",
        key="id",
        label="Pharma Tactics",
        lab_field="laboratorio",
        drug_field="farmaco",
    ),
}


def get_dataset_table(kind: str) -> DatasetTable:
    try:
        return DATASET_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown dataset kind: {kind!r} (expected one of {', '.join(DATASET_KINDS)})")


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class DatasetSnapshot:
    """Full set of rows for one dataset as last fetched."""
    kind: str
    rows: List[Row]
    fetched_at: float   # clock seconds

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def latest_row(self) -> Optional[Row]:
        # rows are fetched newest-first
        return self.rows[0] if self.rows else None


@dataclass(frozen=True)
class ChangeEvent:
    """Emitted by a poller when a dataset grows."""
    kind: str
    count: int          # new total
    delta: int          # always > 0
    latest_row: Optional[Row]
    emitted_at: float

    def __post_init__(self):
        if self.delta <= 0:
            raise ValueError(f"ChangeEvent delta must be positive, got {self.delta}")


@dataclass
class NotificationDetails:
    user_email: str
    laboratory: Optional[str] = None
    drug: Optional[str] = None


@dataclass
class NotificationRecord:
    """A user-facing notification, kept most-recent-first."""
    id: str
    kind: str
    title: str
    message: str
    details: NotificationDetails
    timestamp: float
    count: int
    delta: int

    @property
    def created_at(self) -> datetime:
        return _to_datetime(self.timestamp)


@dataclass
class NotificationSettings:
    """Locally persisted sound/notification preferences."""
    enabled: bool = True
    volume: float = 0.5
    tone: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "volume": self.volume, "tone": self.tone}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationSettings":
        defaults = cls()
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            volume=float(data.get("volume", defaults.volume)),
            # older payloads used "soundType"
            tone=str(data.get("tone") or data.get("soundType") or defaults.tone),
        )


@dataclass
class WorkflowStatus:
    """Derived state of one tracked workflow automation."""
    id: str
    name: str
    state: Optional[str] = None     # running/success/error/waiting/canceled/new
    last_execution: Optional[Row] = None
    progress: int = 0
    checked_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.state in ("running", "new")
