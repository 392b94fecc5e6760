import threading
from typing import Callable, List, NamedTuple, Optional

from findr.models.report import Report, ReportKind
from findr.services.collaborators import IdentityProvider, ReportCollection, Unsubscribe
from findr.utils.auth_helper import Identity, is_owner
from findr.utils.report_filter import SearchFields, SortKey, filter_and_sort


class FeedEntry(NamedTuple):
    report: Report
    is_owner: bool


FeedListener = Callable[[List[FeedEntry]], None]


class ReportFeed:
    """
    The displayed report list for one set of selections.

    Recomputed in full from (latest snapshot x selections x identity) whenever
    any of them changes: a selection setter is called, the collection pushes
    a new snapshot, or the signed-in identity changes.
    """

    def __init__(
        self,
        collection: ReportCollection,
        identity: Optional[IdentityProvider] = None,
        kind: ReportKind = ReportKind.LOST,
        query: str = "",
        sort_key: SortKey = SortKey.LATEST,
        search_fields: SearchFields = SearchFields.TITLE_ONLY,
    ):
        self.collection = collection
        self.identity = identity
        self.kind = kind
        self.query = query
        self.sort_key = sort_key
        self.search_fields = search_fields

        self.entries: List[FeedEntry] = []
        self._snapshot: List[Report] = []
        self._current: Optional[Identity] = None
        self._listeners: List[FeedListener] = []
        self._unsubscribers: List[Unsubscribe] = []
        self._lock = threading.RLock()

    def start(self):
        unsubscribers = []

        if self.identity is not None:
            unsubscribers.append(self.identity.subscribe(self._on_identity))

        # the whole collection is watched so a kind switch needs no resubscribe
        unsubscribers.append(self.collection.subscribe(self._on_snapshot))

        with self._lock:
            self._unsubscribers.extend(unsubscribers)

    def stop(self):
        with self._lock:
            unsubscribers, self._unsubscribers = self._unsubscribers, []

        for unsubscribe in unsubscribers:
            unsubscribe()

    def listen(self, listener: FeedListener):
        with self._lock:
            self._listeners.append(listener)

    def set_kind(self, kind: ReportKind):
        with self._lock:
            self.kind = kind
        self._recompute()

    def set_query(self, query: str):
        with self._lock:
            self.query = query
        self._recompute()

    def set_sort(self, sort_key: SortKey):
        with self._lock:
            self.sort_key = sort_key
        self._recompute()

    def set_search_fields(self, search_fields: SearchFields):
        with self._lock:
            self.search_fields = search_fields
        self._recompute()

    def _on_snapshot(self, snapshot: List[Report]):
        with self._lock:
            self._snapshot = list(snapshot)
        self._recompute()

    def _on_identity(self, identity: Optional[Identity]):
        with self._lock:
            self._current = identity
        self._recompute()

    def _recompute(self):
        with self._lock:
            email = self._current.email if self._current else None
            reports = filter_and_sort(self._snapshot, self.kind, self.query, self.sort_key, self.search_fields)
            self.entries = [FeedEntry(r, is_owner(r, email)) for r in reports]
            entries = self.entries
            listeners = list(self._listeners)

        for listener in listeners:
            listener(entries)
