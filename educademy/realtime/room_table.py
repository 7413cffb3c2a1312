"""
Reference-counted room table.

A room exists only while it has members. Each room is an explicit record
holding its member set; the record is created on first join and removed the
moment its count reaches zero, so the table never holds empty rooms.
"""

from dataclasses import dataclass, field

from .connection_models import RoomKey


@dataclass
class RoomRecord:
    """Membership of one room."""

    key: RoomKey
    members: set[str] = field(default_factory=set)

    @property
    def count(self) -> int:
        return len(self.members)


class RoomTable:
    """
    Room key -> RoomRecord map.

    Not synchronised on its own; the session registry serialises every
    mutation.
    """

    def __init__(self) -> None:
        self._rooms: dict[RoomKey, RoomRecord] = {}

    def add(self, key: RoomKey, connection_id: str) -> int:
        """Add a member, creating the room if needed. Returns the new count."""
        record = self._rooms.get(key)
        if record is None:
            record = RoomRecord(key)
            self._rooms[key] = record
        record.members.add(connection_id)
        return record.count

    def discard(self, key: RoomKey, connection_id: str) -> int:
        """Remove a member, destroying the room at zero. Returns the new count."""
        record = self._rooms.get(key)
        if record is None:
            return 0
        record.members.discard(connection_id)
        if record.count == 0:
            del self._rooms[key]
            return 0
        return record.count

    def members(self, key: RoomKey) -> frozenset[str]:
        record = self._rooms.get(key)
        return frozenset(record.members) if record else frozenset()

    def count(self, key: RoomKey) -> int:
        record = self._rooms.get(key)
        return record.count if record else 0

    def __contains__(self, key: object) -> bool:
        return key in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def keys(self) -> list[RoomKey]:
        return list(self._rooms.keys())
