"""
Badge kinds tracked by the snapshot report and their Discord role mapping.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class BadgeKind(str, Enum):
    """Tracked badge categories, in report column order."""

    WL = "wl"
    WL_WINNER = "wlWinner"
    ML = "ml"
    ML_WINNER = "mlWinner"
    FREE_MINT = "freeMint"
    FREE_MINT_WINNER = "freeMintWinner"

    @property
    def stats_key(self) -> str:
        return self.value

    @property
    def column(self) -> str:
        return _COLUMNS[self]

    @property
    def total_key(self) -> str:
        """Key of the holder counter in the structured stats object, e.g. totalWL."""
        return _TOTAL_KEYS[self]


_COLUMNS = {
    BadgeKind.WL: "wl_role",
    BadgeKind.WL_WINNER: "wl_winner_role",
    BadgeKind.ML: "ml_role",
    BadgeKind.ML_WINNER: "ml_winner_role",
    BadgeKind.FREE_MINT: "free_mint_role",
    BadgeKind.FREE_MINT_WINNER: "free_mint_winner_role",
}

_TOTAL_KEYS = {
    BadgeKind.WL: "totalWL",
    BadgeKind.WL_WINNER: "totalWLWinner",
    BadgeKind.ML: "totalML",
    BadgeKind.ML_WINNER: "totalMLWinner",
    BadgeKind.FREE_MINT: "totalFreeMint",
    BadgeKind.FREE_MINT_WINNER: "totalFreeMintWinner",
}

BADGE_ORDER: tuple[BadgeKind, ...] = tuple(BadgeKind)


@dataclass(frozen=True, slots=True)
class BadgeFlags:
    """One boolean per badge kind, always in column order."""

    values: tuple[bool, ...]

    def __post_init__(self):
        if len(self.values) != len(BADGE_ORDER):
            raise ValueError(f"expected {len(BADGE_ORDER)} flags, got {len(self.values)}")

    @classmethod
    def from_kinds(cls, kinds: Iterable[BadgeKind]) -> "BadgeFlags":
        held = set(kinds)
        return cls(tuple(kind in held for kind in BADGE_ORDER))

    @classmethod
    def none(cls) -> "BadgeFlags":
        return cls((False,) * len(BADGE_ORDER))

    def __getitem__(self, kind: BadgeKind) -> bool:
        return self.values[BADGE_ORDER.index(kind)]

    def __iter__(self) -> Iterator[tuple[BadgeKind, bool]]:
        return iter(zip(BADGE_ORDER, self.values))

    def any(self) -> bool:
        return any(self.values)

    def true_kinds(self) -> list[BadgeKind]:
        return [kind for kind, held in self if held]

    def render(self) -> list[str]:
        return ["Y" if held else "N" for held in self.values]


class BadgeRoleMap:
    """
    Immutable badge -> external role id mapping, loaded once at startup.

    Every badge kind must map to exactly one non-empty role id and no role
    id may back two badges.
    """

    __slots__ = ("_by_kind", "_by_role")

    def __init__(self, by_kind: Mapping[BadgeKind, str]):
        missing = [kind.name for kind in BADGE_ORDER if not (by_kind.get(kind) or "").strip()]
        if missing:
            raise ValueError(f"Missing role id for badge(s): {', '.join(missing)}")

        by_role: dict[str, BadgeKind] = {}
        for kind in BADGE_ORDER:
            role_id = by_kind[kind].strip()
            if role_id in by_role:
                raise ValueError(
                    f"Role id {role_id} is mapped to both {by_role[role_id].name} and {kind.name}"
                )
            by_role[role_id] = kind

        self._by_kind = MappingProxyType({kind: by_kind[kind].strip() for kind in BADGE_ORDER})
        self._by_role = MappingProxyType(by_role)

    @classmethod
    def from_mapping(cls, mapping: Mapping[BadgeKind, str]) -> "BadgeRoleMap":
        return cls(mapping)

    def role_id(self, kind: BadgeKind) -> str:
        return self._by_kind[kind]

    def kinds_for(self, role_ids: Iterable[str]) -> set[BadgeKind]:
        return {self._by_role[role_id] for role_id in role_ids if role_id in self._by_role}

    def flags_for(self, role_ids: Iterable[str]) -> BadgeFlags:
        return BadgeFlags.from_kinds(self.kinds_for(role_ids))

    def as_dict(self) -> dict[str, str]:
        return {kind.name: role_id for kind, role_id in self._by_kind.items()}
