"""Headline figures for each dataset, as shown above the tables."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional

from .models import MEDICATIONS, PHARMA_TACTICS, UNMET_NEEDS, Row

logger = logging.getLogger(__name__)


@dataclass
class Kpi:
    label: str
    value: int
    description: str = ""


def _unique(rows: Iterable[Row], column: str) -> int:
    return len({row[column] for row in rows if row.get(column) not in (None, "")})


def _contains(row: Row, column: str, *needles: str) -> bool:
    text = str(row.get(column) or "").lower()
    return any(needle in text for needle in needles)


def _year(value) -> Optional[int]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)[:10]).year
    except ValueError:
        logger.debug(f"Unparseable approval date: {value!r}")
        return None


def medication_stats(rows: List[Row], today: Optional[date] = None) -> List[Kpi]:
    year = (today or date.today()).year
    approved = sum(1 for row in rows if _year(row.get("fecha_de_aprobacion_espana")) == year)
    return [
        Kpi("Total Indicaciones", len(rows), "Indicaciones registradas"),
        Kpi("Laboratorios", _unique(rows, "nombre_lab"), "Laboratorios únicos"),
        Kpi(f"Aprobados {year}", approved, "Aprobados este año"),
        Kpi("Áreas Terapéuticas", _unique(rows, "area_terapeutica"), "Áreas diferentes"),
    ]


def unmet_needs_stats(rows: List[Row], today: Optional[date] = None) -> List[Kpi]:
    return [
        Kpi("Total Unmet Needs", len(rows)),
        Kpi("Impacto Alto", sum(1 for row in rows if _contains(row, "impacto", "alto"))),
        Kpi("Impacto Medio", sum(1 for row in rows if _contains(row, "impacto", "medio"))),
        Kpi("Corto Plazo", sum(1 for row in rows if _contains(row, "horizonte_temporal", "corto", "inmediato"))),
        Kpi("Áreas Cubiertas", _unique(rows, "area_terapeutica")),
    ]


def tactics_stats(rows: List[Row], today: Optional[date] = None) -> List[Kpi]:
    return [
        Kpi("Total Tactics", len(rows)),
        Kpi("Laboratorios", _unique(rows, "laboratorio")),
        Kpi("Áreas Terapéuticas", _unique(rows, "area_terapeutica")),
        Kpi("Formatos", _unique(rows, "formato")),
    ]


STATS_BY_KIND: Dict[str, Callable[..., List[Kpi]]] = {
    MEDICATIONS: medication_stats,
    UNMET_NEEDS: unmet_needs_stats,
    PHARMA_TACTICS: tactics_stats,
}


def compute_stats(kind: str, rows: List[Row], today: Optional[date] = None) -> List[Kpi]:
    try:
        builder = STATS_BY_KIND[kind]
    except KeyError:
        raise ValueError(f"Unknown dataset kind: {kind!r}")
    return builder(rows, today)
