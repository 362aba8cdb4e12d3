import pytest

from core.roles import (
    ADMIN,
    EMPLOYER,
    PHARMACIST,
    SALES,
    SELF_CARE_ADVISOR,
    allowed_required_roles,
    is_employee_role,
    role_label,
    roles_that_can_take,
)


@pytest.mark.parametrize(
    "role,expected",
    [
        (PHARMACIST, {PHARMACIST, SELF_CARE_ADVISOR, SALES}),
        (SELF_CARE_ADVISOR, {SELF_CARE_ADVISOR, SALES}),
        (SALES, {SALES}),
        (ADMIN, {PHARMACIST, SELF_CARE_ADVISOR, SALES}),
        (EMPLOYER, set()),
        (None, set()),
    ],
)
def test_allowed_required_roles(role, expected):
    assert set(allowed_required_roles(role)) == expected


def test_roles_that_can_take_is_the_inverse():
    assert set(roles_that_can_take(SALES)) == {PHARMACIST, SELF_CARE_ADVISOR, SALES}
    assert set(roles_that_can_take(SELF_CARE_ADVISOR)) == {PHARMACIST, SELF_CARE_ADVISOR}
    assert roles_that_can_take(PHARMACIST) == [PHARMACIST]


def test_is_employee_role_and_labels():
    assert is_employee_role(SALES)
    assert not is_employee_role(EMPLOYER)
    assert role_label(PHARMACIST) == "Farmaceut"
    assert role_label("okänd") == "okänd"
    assert role_label(None) == ""
