"""Tests for filter cascades, search and sorting."""
import pytest

from medistream.filters import TACTICS_FILTERS, FilterCascade, search, sort_rows

ROWS = [
    {"id": 1, "laboratorio": "Roche", "area_terapeutica": "Oncología", "farmaco": "Tecentriq", "molecula": "atezolizumab", "formato": "Webinar"},
    {"id": 2, "laboratorio": "Roche", "area_terapeutica": "Neurología", "farmaco": "Ocrevus", "molecula": "ocrelizumab", "formato": "Congreso"},
    {"id": 3, "laboratorio": "Pfizer", "area_terapeutica": "Oncología", "farmaco": "Ibrance", "molecula": "palbociclib", "formato": "Webinar"},
    {"id": 4, "laboratorio": "Pfizer", "area_terapeutica": None, "farmaco": "Prevenar", "molecula": None, "formato": ""},
]


class TestFilterCascade:

    def test_options_narrow_down_the_cascade(self):
        options = TACTICS_FILTERS.options(ROWS, {"laboratorio": "Roche"})
        assert options["laboratorio"] == ["Pfizer", "Roche"]
        assert options["area_terapeutica"] == ["Neurología", "Oncología"]
        assert options["farmaco"] == ["Ocrevus", "Tecentriq"]
        assert options["formato"] == ["Congreso", "Webinar"]

    def test_select_clears_dependent_columns(self):
        selections = {"laboratorio": "Roche", "area_terapeutica": "Oncología", "farmaco": "Tecentriq", "formato": "Webinar"}
        updated = TACTICS_FILTERS.select(selections, "laboratorio", "Pfizer")
        assert updated == {"laboratorio": "Pfizer", "formato": "Webinar"}
        assert selections["farmaco"] == "Tecentriq"

    def test_select_all_clears_column(self):
        updated = TACTICS_FILTERS.select({"laboratorio": "Roche", "farmaco": "Ocrevus"}, "laboratorio", "all")
        assert updated == {}

    def test_unknown_column(self):
        with pytest.raises(ValueError):
            TACTICS_FILTERS.select({}, "precio", "10")

    def test_apply_with_favorites(self):
        selections = {"area_terapeutica": "Oncología"}
        assert [r["id"] for r in TACTICS_FILTERS.apply(ROWS, selections)] == [1, 3]
        assert [r["id"] for r in TACTICS_FILTERS.apply(ROWS, selections, favorites={"3"})] == [3]

    def test_custom_cascade(self):
        cascade = FilterCascade(cascading=("a", "b"))
        rows = [{"a": "x", "b": "1"}, {"a": "y", "b": "2"}]
        assert cascade.options(rows, {"a": "y"})["b"] == ["2"]


class TestSearchAndSort:

    def test_search_is_case_insensitive(self):
        assert [r["id"] for r in search(ROWS, "ROCHE")] == [1, 2]

    def test_search_limited_to_columns(self):
        assert search(ROWS, "roche", columns=["farmaco"]) == []

    def test_blank_search_returns_everything(self):
        assert len(search(ROWS, "  ")) == len(ROWS)

    def test_sort_puts_missing_values_last(self):
        ordered = sort_rows(ROWS, "area_terapeutica")
        assert [r["id"] for r in ordered] == [2, 1, 3, 4]
        ordered = sort_rows(ROWS, "area_terapeutica", descending=True)
        assert ordered[-1]["id"] == 4

    def test_sort_numeric(self):
        assert [r["id"] for r in sort_rows(ROWS, "id", descending=True)] == [4, 3, 2, 1]


class TestFalsyValues:

    def test_zero_is_a_selectable_option(self):
        rows = [{"id": 1, "fase": 0}, {"id": 2, "fase": 1}, {"id": 3, "fase": None}]
        cascade = FilterCascade(cascading=("fase",))
        assert cascade.options(rows, {})["fase"] == ["0", "1"]

        selections = cascade.select({}, "fase", "0")
        assert [r["id"] for r in cascade.apply(rows, selections)] == [1]
