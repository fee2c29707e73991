"""In-memory roster snapshot - the source of each person's last-known busy set.

A snapshot holds the full roster listing plus any search results fetched since.
It is replaced wholesale by a refetch; BatchEditAggregator only reads from it.
"""

from collections.abc import Iterable

from src.availability.errors import UnknownPersonError
from src.availability.models import Person


class RosterSnapshot:
    """People currently loaded in the editor, keyed by id."""

    def __init__(
        self,
        listing: Iterable[Person] = (),
        search_results: Iterable[Person] = (),
    ) -> None:
        self._listing: dict[str, Person] = {p.id: p for p in listing}
        self._search: dict[str, Person] = {p.id: p for p in search_results}

    def __len__(self) -> int:
        return len(self._listing.keys() | self._search.keys())

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._listing or person_id in self._search

    @property
    def people(self) -> list[Person]:
        """Listing first, then search-only results, each in load order."""
        extra = [p for pid, p in self._search.items() if pid not in self._listing]
        return list(self._listing.values()) + extra

    def get(self, person_id: str) -> Person | None:
        """Last-known record for person_id; the full listing wins over search results."""
        return self._listing.get(person_id) or self._search.get(person_id)

    def require(self, person_id: str) -> Person:
        person = self.get(person_id)
        if person is None:
            raise UnknownPersonError(person_id)
        return person

    def add_search_results(self, people: Iterable[Person]) -> None:
        for person in people:
            self._search[person.id] = person

    def replace_listing(self, people: Iterable[Person]) -> None:
        """Swap in a fresh listing, e.g. after a refetch following a write."""
        self._listing = {p.id: p for p in people}
