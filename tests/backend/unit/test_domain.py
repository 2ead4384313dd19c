import pytest

from veilofplay.backend.domain import GRID_MAX, GRID_MIN, CoordinateDomain
from veilofplay.backend.errors import DomainUnsupported


def test_default_domain_matches_grid_constants() -> None:
    domain = CoordinateDomain()

    assert domain.bounds() == (GRID_MIN, GRID_MAX) == (1, 10)
    assert domain.width == 10


def test_contains_is_inclusive_on_both_ends() -> None:
    domain = CoordinateDomain(minimum=3, maximum=5)

    assert [value for value in range(0, 8) if domain.contains(value)] == [3, 4, 5]


def test_single_value_domain_is_allowed() -> None:
    domain = CoordinateDomain(minimum=7, maximum=7)

    assert domain.width == 1
    assert domain.contains(7) is True


def test_inverted_bounds_are_rejected() -> None:
    with pytest.raises(DomainUnsupported):
        CoordinateDomain(minimum=5, maximum=4)
