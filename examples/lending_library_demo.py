#!/usr/bin/env python3
"""
Demo: Narrating a lending library.

This script traces a small lending service and prints the same execution in
every supported form:
1. Indented text
2. Prose
3. Mermaid and PlantUML sequence diagrams
4. A failed loan, and a loan recorded on a worker thread

Run with:
    python examples/lending_library_demo.py
"""

import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path

# Add core to path
sys.path.insert(0, str(Path(__file__).parent.parent / "core"))

from narrativetrace import (
    DirectiveRegistry,
    JsonExporter,
    NarrationDirective,
    NarrativeContext,
    NarrativeLogFilter,
    NarrativeTraceConfig,
    TracingProxy,
    render,
)

logger = logging.getLogger("lending")


class NotFound(Exception):
    pass


@dataclass
class Book:
    isbn: str
    title: str
    available: bool = True


class CatalogService:
    def __init__(self):
        self.books = {
            "978-0-13-468599-1": Book("978-0-13-468599-1", "Clean Architecture"),
            "978-0-13-235088-4": Book("978-0-13-235088-4", "Clean Code", available=False),
        }

    def find_book(self, isbn):
        book = self.books.get(isbn)
        if book is None or not book.available:
            raise NotFound(f"Book not available: {isbn}")
        logger.info(f"Found {book.title}")
        return book


class MemberService:
    def lookup_member(self, member_id):
        return {"member_id": member_id, "name": "Ada Lovelace"}


class LendingService:
    def __init__(self, catalog, members):
        self.catalog = catalog
        self.members = members

    def borrow_book(self, isbn, member_id, pin):
        book = self.catalog.find_book(isbn)
        member = self.members.lookup_member(member_id)
        return f"{book.title} lent to {member['name']}"


def build_directives():
    registry = DirectiveRegistry()
    registry.register(
        "LendingService",
        "borrow_book",
        NarrationDirective.build(
            template="Borrowing book {isbn} for member {member_id}",
            on_error=[("Could not lend {isbn}: {$message}", NotFound)],
            exclude=["pin"],
        ),
    )
    registry.register(
        "CatalogService",
        "find_book",
        NarrationDirective.build(template="found {$result} under {isbn}"),
    )
    registry.register(
        "MemberService",
        "lookup_member",
        NarrationDirective.build(template="looked up member {member_id}"),
    )
    return registry


def section(title):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def main():
    context = NarrativeContext(NarrativeTraceConfig.from_env())

    handler = logging.StreamHandler()
    handler.addFilter(NarrativeLogFilter(context))
    handler.setFormatter(logging.Formatter("    log %(narrative_frame)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

    registry = build_directives()
    catalog = TracingProxy(CatalogService(), context, directives=registry)
    members = TracingProxy(MemberService(), context, directives=registry)
    lending = TracingProxy(LendingService(catalog, members), context, directives=registry)

    section("DEMO 1: Successful loan")
    lending.borrow_book("978-0-13-468599-1", "M-001", pin="4821")
    trace = context.capture_trace()
    for fmt in ("indented", "prose", "markdown", "mermaid", "plantuml"):
        print(f"\n--- {fmt} ---")
        print(render(trace, fmt))

    section("DEMO 2: Failed loan")
    context.reset()
    try:
        lending.borrow_book("978-0-13-235088-4", "M-001", pin="4821")
    except NotFound as e:
        print(f"Caller saw: {e}")
    print(render(context.capture_trace(), "indented"))

    section("DEMO 3: Work handed to another thread")
    context.reset()
    handle = context.begin_call("Library", "open_branch", [("branch", "Annex")])
    snapshot = context.snapshot()
    worker = threading.Thread(
        target=snapshot.wrap(lending.borrow_book),
        args=("978-0-13-468599-1", "M-001", "4821"),
    )
    worker.start()
    worker.join()
    context.end_call_success(handle)
    trace = context.capture_trace()
    print(render(trace, "indented"))

    print("\n--- json ---")
    print(JsonExporter().export(trace))


if __name__ == "__main__":
    main()
