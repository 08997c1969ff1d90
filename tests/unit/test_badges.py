import pytest

from conftest import ROLE_IDS

from app.features.snapshot.domain import BADGE_ORDER, BadgeFlags, BadgeKind, BadgeRoleMap


def test_flags_follow_column_order(role_map):
    flags = role_map.flags_for({ROLE_IDS[BadgeKind.ML], "unrelated-role"})

    assert flags.render() == ["N", "N", "Y", "N", "N", "N"]
    assert flags.true_kinds() == [BadgeKind.ML]
    assert flags[BadgeKind.ML] is True
    assert flags.any()


def test_no_tracked_roles_yields_empty_flags(role_map):
    flags = role_map.flags_for({"some-other-role"})

    assert flags == BadgeFlags.none()
    assert not flags.any()


def test_winner_and_base_tier_are_independent(role_map):
    flags = role_map.flags_for({ROLE_IDS[BadgeKind.FREE_MINT_WINNER]})

    assert flags[BadgeKind.FREE_MINT_WINNER] is True
    assert flags[BadgeKind.FREE_MINT] is False


def test_role_map_rejects_missing_role():
    mapping = dict(ROLE_IDS)
    mapping[BadgeKind.WL] = ""

    with pytest.raises(ValueError, match="WL"):
        BadgeRoleMap.from_mapping(mapping)


def test_role_map_rejects_shared_role_id():
    mapping = dict(ROLE_IDS)
    mapping[BadgeKind.ML_WINNER] = mapping[BadgeKind.ML]

    with pytest.raises(ValueError, match="mapped to both"):
        BadgeRoleMap.from_mapping(mapping)


def test_badge_columns():
    assert [kind.column for kind in BADGE_ORDER] == [
        "wl_role",
        "wl_winner_role",
        "ml_role",
        "ml_winner_role",
        "free_mint_role",
        "free_mint_winner_role",
    ]

