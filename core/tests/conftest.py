"""
Shared fixtures for core tests.

Provides a fresh NarrativeContext per test and a small lending-library
domain (catalog, members, lending) wired through TracingProxy, so tests can
drive realistic nested calls instead of hand-assembling frames.
"""

from dataclasses import dataclass, field
from typing import Callable

import pytest

from narrativetrace import (
    DirectiveRegistry,
    NarrationDirective,
    NarrativeContext,
    NarrativeTraceConfig,
    TracingProxy,
)

AVAILABLE_ISBN = "978-0-13-468599-1"
LENT_OUT_ISBN = "978-0-13-235088-4"


class NotFound(Exception):
    """Raised by the sample services for missing or unavailable records."""


@dataclass
class Book:
    isbn: str
    title: str
    available: bool = True


@dataclass
class Member:
    member_id: str
    name: str


@dataclass
class Loan:
    isbn: str
    member_id: str


class CatalogService:
    def __init__(self) -> None:
        self.books = {
            AVAILABLE_ISBN: Book(AVAILABLE_ISBN, "Clean Architecture"),
            LENT_OUT_ISBN: Book(LENT_OUT_ISBN, "Clean Code", available=False),
        }

    def find_book(self, isbn: str) -> Book:
        book = self.books.get(isbn)
        if book is None or not book.available:
            raise NotFound(f"Book not available: {isbn}")
        return book


class MemberService:
    def __init__(self) -> None:
        self.members = {"M-001": Member("M-001", "Ada Lovelace")}

    def lookup_member(self, member_id: str) -> Member:
        try:
            return self.members[member_id]
        except KeyError:
            raise NotFound(f"No member {member_id}") from None


@dataclass
class LendingService:
    catalog: CatalogService
    members: MemberService
    loans: list = field(default_factory=list)

    def borrow_book(self, isbn: str, member_id: str) -> Loan:
        book = self.catalog.find_book(isbn)
        member = self.members.lookup_member(member_id)
        loan = Loan(book.isbn, member.member_id)
        self.loans.append(loan)
        return loan


@pytest.fixture
def config() -> NarrativeTraceConfig:
    """Default (DETAIL) configuration, mutable per test."""
    return NarrativeTraceConfig()


@pytest.fixture
def context(config: NarrativeTraceConfig) -> NarrativeContext:
    """Create a fresh NarrativeContext bound to the ``config`` fixture."""
    return NarrativeContext(config=config)


@pytest.fixture
def directives() -> DirectiveRegistry:
    """Directives for the sample lending domain."""
    registry = DirectiveRegistry()
    registry.register(
        "LendingService",
        "borrow_book",
        NarrationDirective.build(template="Borrowing book {isbn} for member {member_id}"),
    )
    return registry


@pytest.fixture
def make_library(
    context: NarrativeContext, directives: DirectiveRegistry
) -> Callable[..., LendingService]:
    """
    Factory fixture wiring the sample services through TracingProxy.

    Returns:
        A function taking an optional DirectiveRegistry and returning a
        traced LendingService whose collaborators are traced as well.
    """

    def _make(registry: DirectiveRegistry | None = None) -> LendingService:
        registry = registry or directives
        catalog = TracingProxy(CatalogService(), context, directives=registry)
        members = TracingProxy(MemberService(), context, directives=registry)
        return TracingProxy(LendingService(catalog, members), context, directives=registry)

    return _make


@pytest.fixture
def library(make_library: Callable[..., LendingService]) -> LendingService:
    return make_library()
