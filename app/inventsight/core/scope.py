from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from app.inventsight.core.config import settings
from app.inventsight.schemas.transfers import ActorRef, LocationType, TransferLocation


SYSTEM_ROLE = "SYSTEM"


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().upper()


def is_gm_plus(role: str | None) -> bool:
    return _normalize_role(role) in {r.upper() for r in settings.GM_PLUS_ROLES}


def is_system(role: str | None) -> bool:
    return _normalize_role(role) == SYSTEM_ROLE


def parse_location_claim(claim: str) -> tuple[LocationType, str]:
    """Parse a ``"STORE:<id>"`` / ``"WAREHOUSE:<id>"`` assignment claim."""
    kind, sep, location_id = claim.partition(":")
    if not sep or not location_id:
        raise ValueError(f"malformed location claim: {claim!r}")
    return LocationType(kind.strip().upper()), location_id.strip()


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: str | None = None
    locations: frozenset[tuple[LocationType, str]] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        *,
        id: str,
        name: str,
        role: str | None = None,
        locations: Iterable[tuple[LocationType, str] | str] = (),
    ) -> "Actor":
        keys = set()
        for location in locations:
            if isinstance(location, str):
                keys.add(parse_location_claim(location))
            else:
                keys.add((LocationType(location[0]), str(location[1])))
        return cls(id=id, name=name, role=role, locations=frozenset(keys))

    @classmethod
    def system(cls) -> "Actor":
        return cls(id="system", name="System", role=SYSTEM_ROLE)

    @property
    def is_gm_plus(self) -> bool:
        return is_gm_plus(self.role)

    @property
    def is_system(self) -> bool:
        return is_system(self.role)

    def works_at(self, location: TransferLocation) -> bool:
        return location.key in self.locations

    def ref(self) -> ActorRef:
        return ActorRef(id=self.id, name=self.name)
