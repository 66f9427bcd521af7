"""Dependent filter cascades, search and sorting over in-memory rows."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from .models import MEDICATIONS, PHARMA_TACTICS, UNMET_NEEDS, Row

Selections = Dict[str, str]

CLEAR_VALUES = ("", "all")


def _matches(row: Row, column: str, selected: str) -> bool:
    value = row.get(column)
    return ("" if value is None else str(value)) == selected


def _distinct(rows: Iterable[Row], column: str) -> List[str]:
    return sorted({str(row[column]) for row in rows if row.get(column) not in (None, "")})


@dataclass(frozen=True)
class FilterCascade:
    """
    Ordered filters where each choice narrows the options of the next.

    ``cascading`` columns depend on every column before them: picking a
    laboratory limits the areas offered, picking an area limits the drugs,
    and so on. ``independent`` columns take their options from the rows left
    after all cascading selections.
    """
    cascading: Sequence[str]
    independent: Sequence[str] = ()
    key: str = "id"

    @property
    def columns(self) -> List[str]:
        return list(self.cascading) + list(self.independent)

    def _filter(self, rows: Iterable[Row], selections: Selections, columns: Iterable[str]) -> List[Row]:
        result = list(rows)
        for column in columns:
            value = selections.get(column)
            if value:
                result = [row for row in result if _matches(row, column, value)]
        return result

    def options(self, rows: Sequence[Row], selections: Selections) -> Dict[str, List[str]]:
        options = {}
        for index, column in enumerate(self.cascading):
            narrowed = self._filter(rows, selections, self.cascading[:index])
            options[column] = _distinct(narrowed, column)
        narrowed = self._filter(rows, selections, self.cascading)
        for column in self.independent:
            options[column] = _distinct(narrowed, column)
        return options

    def select(self, selections: Selections, column: str, value: Optional[str]) -> Selections:
        """
        Return new selections with ``column`` set to ``value``.

        Changing a cascading column clears every cascading column after it.
        An empty value or "all" clears the column itself.
        """
        if column not in self.columns:
            raise ValueError(f"Unknown filter column: {column!r}")
        updated = dict(selections)
        if value is None or value in CLEAR_VALUES:
            updated.pop(column, None)
        else:
            updated[column] = value
        if column in self.cascading:
            for dependent in self.cascading[self.cascading.index(column) + 1:]:
                updated.pop(dependent, None)
        return updated

    def apply(
        self,
        rows: Sequence[Row],
        selections: Selections,
        favorites: Optional[Set[str]] = None,
    ) -> List[Row]:
        """Rows matching every selection; with ``favorites``, only those rows."""
        result = self._filter(rows, selections, self.columns)
        if favorites is not None:
            result = [row for row in result if str(row.get(self.key)) in favorites]
        return result


MEDICATION_FILTERS = FilterCascade(
    cascading=("nombre_lab", "area_terapeutica", "nombre_del_farmaco", "nombre_de_la_molecula"),
    independent=("estado_en_espana", "linea_de_tratamiento"),
    key="ID_NUM",
)

UNMET_NEEDS_FILTERS = FilterCascade(
    cascading=("lab", "area_terapeutica", "farmaco", "molecula"),
    independent=("horizonte_temporal", "impacto"),
    key="id_UN_table",
)

TACTICS_FILTERS = FilterCascade(
    cascading=("laboratorio", "area_terapeutica", "farmaco", "molecula"),
    independent=("formato",),
    key="id",
)

FILTER_PRESETS = {
    MEDICATIONS: MEDICATION_FILTERS,
    UNMET_NEEDS: UNMET_NEEDS_FILTERS,
    PHARMA_TACTICS: TACTICS_FILTERS,
}


def search(rows: Sequence[Row], term: str, columns: Optional[Sequence[str]] = None) -> List[Row]:
    """Case-insensitive substring search over ``columns`` (all columns by default)."""
    term = (term or "").strip().lower()
    if not term:
        return list(rows)
    result = []
    for row in rows:
        values = (row.get(c) for c in columns) if columns else row.values()
        if any(term in str(v).lower() for v in values if v is not None):
            result.append(row)
    return result


def sort_rows(rows: Sequence[Row], column: str, descending: bool = False) -> List[Row]:
    """Sort by ``column``; rows without a value always go last."""
    present = [row for row in rows if row.get(column) not in (None, "")]
    missing = [row for row in rows if row.get(column) in (None, "")]

    def sort_key(row: Row) -> Any:
        value = row[column]
        if isinstance(value, (int, float)):
            return (0, value, "")
        return (1, 0, str(value).lower())

    return sorted(present, key=sort_key, reverse=descending) + missing
