"""
Narrow interfaces to the services findr depends on.

ReportService only ever talks to these protocols; the concrete SQL, S3 and
token backed implementations are chosen in main.create_app and can be
swapped for in-memory ones in tests.
"""
from typing import Callable, List, Optional, Protocol

from findr.models.report import Report, ReportKind
from findr.utils.auth_helper import Identity

Unsubscribe = Callable[[], None]
SnapshotListener = Callable[[List[Report]], None]
IdentityListener = Callable[[Optional[Identity]], None]


class IdentityProvider(Protocol):
    def current_identity(self) -> Optional[Identity]: ...

    def subscribe(self, listener: IdentityListener) -> Unsubscribe: ...


class ReportCollection(Protocol):
    def snapshot(self, kind: Optional[ReportKind] = None) -> List[Report]: ...

    def get(self, report_id: str) -> Optional[Report]: ...

    def create(self, report: Report) -> Report: ...

    def update(self, report: Report) -> Report: ...

    def delete(self, report_id: str) -> None: ...

    def set_resolved(self, report_id: str) -> Report: ...

    def subscribe(self, listener: SnapshotListener, kind: Optional[ReportKind] = None) -> Unsubscribe: ...


class BlobStore(Protocol):
    def upload(self, data: bytes, content_type: Optional[str], filename: str) -> str: ...

    def delete(self, reference: str) -> None: ...

    def url_for(self, reference: Optional[str]) -> Optional[str]: ...
