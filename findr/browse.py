"""
Terminal client for browsing and managing reports.

    python -m findr.browse

Keeps the report list for the current selections on screen and redraws it
whenever it changes: a selection command, a report being written, or the
user signing in or out.
"""
import argparse
import cmd
import shlex
import sys
from typing import List, Optional

from findr.core.config import get_settings
from findr.core.logging import setup_logging
from findr.db.db import create_db_engine, init_db
from findr.errors import AuthError, FindrError
from findr.models.report import ReportKind, as_utc
from findr.services.auth_service import AuthService, IdentitySession
from findr.services.report_collection import SQLReportCollection
from findr.services.report_feed import FeedEntry, ReportFeed
from findr.services.report_service import ReportService
from findr.utils.report_filter import SearchFields, SortKey
from findr.utils.s3_service import S3BlobStore


def format_entry(entry: FeedEntry) -> str:
    report = entry.report
    when = as_utc(report.occurred_at).strftime("%Y-%m-%d %H:%M")
    line = f"{report.id[:8]}  {when}  {report.title} @ {report.location}"

    flags = []
    if report.resolved:
        flags.append("resolved")
    if entry.is_owner:
        flags.append("mine")

    return f"{line}  [{', '.join(flags)}]" if flags else line


class ReportBrowser(cmd.Cmd):
    intro = "Findr report browser. Type help or ? to list commands."
    prompt = "(findr) "

    def __init__(self, service: ReportService, session: IdentitySession, stdout=None):
        super().__init__(stdout=stdout)
        self.service = service
        self.session = session
        self.feed = ReportFeed(service.collection, session, search_fields=service.search_fields)
        self.feed.listen(self.render)

    def start(self):
        self.feed.start()

    def stop(self):
        self.feed.stop()

    def preloop(self):
        self.start()

    def postloop(self):
        self.stop()

    def render(self, entries: List[FeedEntry]):
        identity = self.session.current_identity()
        header = [
            self.feed.kind.value,
            self.feed.sort_key.value,
            self.feed.search_fields.value,
        ]
        if self.feed.query:
            header.append(f"search '{self.feed.query}'")
        header.append(f"signed in as {identity.email}" if identity else "signed out")

        self.say("== " + " | ".join(header))
        for entry in entries:
            self.say(format_entry(entry))
        if not entries:
            self.say("(no reports)")

    def say(self, text: str):
        self.stdout.write(text + "\n")

    def emptyline(self):
        # do not repeat the previous command
        return False

    # Selections

    def do_lost(self, arg):
        """lost: show lost reports"""
        self.feed.set_kind(ReportKind.LOST)

    def do_found(self, arg):
        """found: show found reports"""
        self.feed.set_kind(ReportKind.FOUND)

    def do_search(self, arg):
        """search [TEXT]: filter by text, no text clears the search"""
        self.feed.set_query(arg.strip())

    def do_sort(self, arg):
        """sort latest|oldest"""
        try:
            sort_key = SortKey(arg.strip())
        except ValueError:
            self.say("Sort must be one of: " + ", ".join(k.value for k in SortKey))
            return
        self.feed.set_sort(sort_key)

    def do_fields(self, arg):
        """fields title_only|title_description_tags: what the search looks at"""
        try:
            search_fields = SearchFields(arg.strip())
        except ValueError:
            self.say("Fields must be one of: " + ", ".join(f.value for f in SearchFields))
            return
        self.feed.set_search_fields(search_fields)

    # Account

    def do_signup(self, arg):
        """signup EMAIL PASSWORD"""
        self._authenticate(arg, self.session.sign_up)

    def do_login(self, arg):
        """login EMAIL PASSWORD"""
        self._authenticate(arg, self.session.sign_in)

    def do_logout(self, arg):
        """logout"""
        self.session.sign_out()

    # Report actions

    def do_show(self, arg):
        """show ID: print every field of a report"""
        if not arg.strip():
            self.say("A report id is required")
            return

        try:
            report = self.service.get(self._report_id(arg))
        except FindrError as e:
            self.say(f"Error: {e}")
            return

        for key, value in report.to_document().items():
            self.say(f"{key}: {value}")

    def do_resolve(self, arg):
        """resolve ID: mark a report resolved"""
        self._act(arg, self.service.resolve)

    def do_delete(self, arg):
        """delete ID: delete one of your reports"""
        self._act(arg, self.service.delete)

    def do_quit(self, arg):
        """quit"""
        return True

    do_EOF = do_quit

    # Helpers

    def _authenticate(self, arg, action):
        try:
            email, password = shlex.split(arg)
        except ValueError:
            self.say("Usage: EMAIL PASSWORD")
            return

        try:
            action(email, password)
        except AuthError as e:
            self.say(str(e))

    def _act(self, arg, action):
        if not arg.strip():
            self.say("A report id is required")
            return

        try:
            action(self.session.current_identity(), self._report_id(arg))
        except FindrError as e:
            self.say(f"Error: {e}")

    def _report_id(self, arg: str) -> str:
        """Expand the short id shown in the list to the full one."""
        prefix = arg.strip()
        matches = [e.report.id for e in self.feed.entries if e.report.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else prefix


def build_browser(database_url: Optional[str] = None) -> ReportBrowser:
    settings = get_settings()

    engine = create_db_engine(database_url or settings.database_url)
    init_db(engine)

    blob_store = S3BlobStore.from_settings(settings) if settings.r2_bucket else None
    service = ReportService(
        SQLReportCollection(engine),
        blob_store,
        resolve_policy=settings.resolve_policy,
        search_fields=settings.search_fields,
    )
    auth = AuthService(engine, settings.jwt_secret, settings.access_token_expire_minutes)

    return ReportBrowser(service, IdentitySession(auth))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Browse Findr reports")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)

    setup_logging(get_settings().log_level)

    build_browser(args.database_url).cmdloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
