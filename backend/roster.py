"""
Unit roster adapters.

The list of units is owned by another part of the system. The monitoring
core only needs a point-in-time snapshot of it when an event is created
(fan-out) and display names when a report is assembled.
"""

from typing import Callable, Iterable, List, Optional, Protocol

from db import get_conn, store_errors
from models import Unit


class UnitRosterProvider(Protocol):
    def list_units(self) -> List[Unit]: ...


class PostgresUnitRoster:
    """Reads the shared `units` table (id, name)."""

    def __init__(self, connection_factory: Optional[Callable] = None):
        self._connect = connection_factory or get_conn

    def list_units(self) -> List[Unit]:
        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id, name FROM units ORDER BY name")
                return [Unit(id=str(r[0]), name=r[1] or "") for r in cur.fetchall()]


class StaticUnitRoster:
    def __init__(self, units: Iterable[Unit]):
        self._units = list(units)

    def list_units(self) -> List[Unit]:
        return list(self._units)


def parse_static_units(value: str) -> List[Unit]:
    """Parse `id=Name,id2=Name 2` (names optional) into units."""

    units = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        unit_id, _, name = item.partition("=")
        units.append(Unit(id=unit_id.strip(), name=name.strip()))
    return units
