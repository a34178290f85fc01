"""
Per-bot contact and group-metadata caches.
"""

from typing import Iterator, Optional

from wabot.models.account import Address, GroupMetadata


class ContactCache:
    """Known contacts keyed by linked id.

    The first sighting of a contact wins; later updates may only rename it.
    """

    def __init__(self) -> None:
        self._contacts: dict[str, Address] = {}

    def __contains__(self, jid: object) -> bool:
        return jid in self._contacts

    def __len__(self) -> int:
        return len(self._contacts)

    def __iter__(self) -> Iterator[Address]:
        return iter(list(self._contacts.values()))

    def get(self, jid: str) -> Optional[Address]:
        return self._contacts.get(jid)

    def add(self, contact: Address) -> bool:
        if not contact.jid or contact.jid in self._contacts:
            return False
        self._contacts[contact.jid] = contact.model_copy()
        return True

    def set(self, contact: Address) -> None:
        self._contacts[contact.jid] = contact.model_copy()

    def rename(self, jid: str, name: str) -> bool:
        contact = self._contacts.get(jid)
        if contact is None or not name or contact.name == name:
            return False
        contact.name = name
        return True

    def find(self, jid: Optional[str] = None, pn: Optional[str] = None) -> Optional[Address]:
        if jid and jid in self._contacts:
            return self._contacts[jid]
        if pn:
            for contact in self._contacts.values():
                if contact.pn == pn:
                    return contact
        return None


class GroupCache:
    def __init__(self) -> None:
        self._groups: dict[str, GroupMetadata] = {}

    def __contains__(self, jid: object) -> bool:
        return jid in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def get(self, jid: str) -> Optional[GroupMetadata]:
        return self._groups.get(jid)

    def set(self, jid: str, metadata: GroupMetadata) -> None:
        self._groups[jid] = metadata

    def invalidate(self, jid: str) -> None:
        self._groups.pop(jid, None)
