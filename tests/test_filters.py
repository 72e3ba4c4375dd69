import pytest

from filters import CategoryFilters


def _record(ptype: str = "Article", affiliation: str = "IED", faculty: str = "Sajid Ali") -> dict:
    return {"Publication Type": ptype, "Affiliation": affiliation, "Faculty": faculty, "Year": 2020, "Title": "T"}


def test_empty_filters_match_everything() -> None:
    filters = CategoryFilters()
    assert filters.active is False
    assert filters.matches(_record()) is True
    assert filters.matches({}) is True


@pytest.mark.parametrize("placeholder", [["string"], ["String "], [""], []])
def test_placeholder_selection_means_no_filter(placeholder: list[str]) -> None:
    filters = CategoryFilters.build(publication_types=placeholder, affiliations=placeholder)
    assert filters.publication_types == ()
    assert filters.affiliations == ()
    assert filters.matches(_record(ptype="Book")) is True


@pytest.mark.parametrize("ptype", ["Article", "article", "  ARTICLE  "])
def test_type_filter_is_case_insensitive(ptype: str) -> None:
    filters = CategoryFilters.build(publication_types=["Article"])
    assert filters.matches(_record(ptype=ptype)) is True


def test_type_filter_rejects_other_types() -> None:
    filters = CategoryFilters.build(publication_types=["Article", "Book"])
    assert filters.matches(_record(ptype="Book Chapter")) is False


def test_affiliation_and_faculty_must_both_match() -> None:
    filters = CategoryFilters.build(affiliations=["External"], faculty="Sajid Ali")
    assert filters.matches(_record(affiliation="External")) is True
    assert filters.matches(_record(affiliation="IED")) is False
    assert filters.matches(_record(affiliation="External", faculty="Someone")) is False


def test_record_missing_category_fails_active_filter() -> None:
    filters = CategoryFilters.build(affiliations=["IED"])
    assert filters.matches({"Year": 2020, "Title": "T"}) is False


def test_describe_without_filters() -> None:
    assert CategoryFilters().describe() == "Filters: none"


def test_describe_lists_types_affiliations_and_years() -> None:
    filters = CategoryFilters.build(["Article", "Book"], ["IED"])
    line = filters.describe(2000, 2025)

    assert line.startswith("Filters applied: ")
    assert "Types: Article, Book" in line
    assert "Affiliations: IED" in line
    assert "Years: 2000–2025" in line
    assert line.endswith("(categories: 3)")


@pytest.mark.parametrize("filters,expected", [
    (CategoryFilters(), "ALL"),
    (CategoryFilters.build(["Article", "Book"]), "Article+Book"),
    (CategoryFilters.build(["Article"], faculty="Sajid Ali"), "Sajid Ali"),
])
def test_subject(filters: CategoryFilters, expected: str) -> None:
    assert filters.subject() == expected


def test_directly_constructed_filters_normalize_selections() -> None:
    filters = CategoryFilters(publication_types=(" ARTICLE",), faculty="sajid ali ")
    assert filters.matches(_record(ptype="article", faculty="Sajid Ali")) is True
    assert filters.matches(_record(ptype="Book")) is False
    assert filters == CategoryFilters(publication_types=(" ARTICLE",), faculty="sajid ali ")
