"""Tests for the indented, prose and sequence-diagram renderers."""

from __future__ import annotations

import re

import pytest

from narrativetrace import (
    DirectiveRegistry,
    IndentedTextRenderer,
    JsonExporter,
    MarkdownRenderer,
    MermaidSequenceRenderer,
    NarrationDirective,
    PlantUmlSequenceRenderer,
    ProseRenderer,
    render,
)
from narrativetrace.render import SequenceDiagramRenderer

AVAILABLE_ISBN = "978-0-13-468599-1"
LENT_OUT_ISBN = "978-0-13-235088-4"

ALL_RENDERERS = [
    IndentedTextRenderer(),
    ProseRenderer(),
    MermaidSequenceRenderer(),
    PlantUmlSequenceRenderer(),
    MarkdownRenderer(),
]


@pytest.fixture
def prose_directives() -> DirectiveRegistry:
    registry = DirectiveRegistry()
    registry.register(
        "LendingService",
        "borrow_book",
        NarrationDirective.build(
            template="Borrowing book {isbn} for member {member_id}",
            on_error=[("Could not lend {isbn}: {$message}", "NotFound")],
        ),
    )
    registry.register(
        "CatalogService",
        "find_book",
        NarrationDirective.build(
            template="found book {isbn}",
            on_error=[("failed to find book {isbn}", "NotFound")],
        ),
    )
    registry.register(
        "MemberService",
        "lookup_member",
        NarrationDirective.build(template="looked up member {member_id}"),
    )
    return registry


def record(context, type_name, method_name, template=None, fail=None, children=()):
    """Record one call (and nested calls) directly on ``context``."""
    directive = NarrationDirective.build(template=template) if template else None
    handle = context.begin_call(type_name, method_name, [], directive)
    for child in children:
        child()
    if fail:
        context.end_call_error(handle, fail, "failed")
    else:
        context.end_call_success(handle)


class TestIndentedTextRenderer:
    def test_three_frame_layout(self, context, library):
        library.borrow_book(AVAILABLE_ISBN, "M-001")

        text = IndentedTextRenderer().render(context.capture_trace())

        assert text.splitlines() == [
            "Borrowing book 978-0-13-468599-1 for member M-001",
            '  CatalogService.find_book(isbn="978-0-13-468599-1") '
            '-> Book(isbn="978-0-13-468599-1", title="Clean Architecture", available=True)',
            '  MemberService.lookup_member(member_id="M-001") '
            '-> Member(member_id="M-001", name="Ada Lovelace")',
        ]

    def test_failure_marker(self, context, library):
        with pytest.raises(Exception):
            library.borrow_book(LENT_OUT_ISBN, "M-001")

        lines = IndentedTextRenderer().render(context.capture_trace()).splitlines()

        assert lines[0].startswith("!! LendingService.borrow_book(")
        assert lines[1] == (
            '  !! CatalogService.find_book(isbn="978-0-13-235088-4") '
            "-> raised NotFound: Book not available: 978-0-13-235088-4"
        )

    def test_pending_frames(self, context):
        outer = context.begin_call("LendingService", "borrow_book")
        context.end_call_success(context.begin_call("CatalogService", "find_book"))

        text = IndentedTextRenderer().render(context.capture_trace())

        assert text.splitlines()[0] == "LendingService.borrow_book (pending)"
        context.end_call_success(outer)

    def test_custom_indent_and_durations(self, context, library):
        library.borrow_book(AVAILABLE_ISBN, "M-001")

        renderer = IndentedTextRenderer(indent="....", show_durations=True)
        lines = renderer.render(context.capture_trace()).splitlines()

        assert lines[1].startswith("....CatalogService.find_book")
        assert all(re.search(r" \[\d+ms\]$", line) for line in lines)

    def test_empty_trace(self, context):
        assert IndentedTextRenderer().render(context.capture_trace()) == ""


class TestProseRenderer:
    def test_children_become_steps(self, context, make_library, prose_directives):
        make_library(prose_directives).borrow_book(AVAILABLE_ISBN, "M-001")

        text = ProseRenderer().render(context.capture_trace())

        assert text == (
            "Borrowing book 978-0-13-468599-1 for member M-001; to do so, it first "
            "found book 978-0-13-468599-1, then looked up member M-001."
        )

    def test_failure_ends_the_chain(self, context, make_library, prose_directives):
        with pytest.raises(Exception):
            make_library(prose_directives).borrow_book(LENT_OUT_ISBN, "M-001")

        text = ProseRenderer().render(context.capture_trace())

        assert text == (
            "Could not lend 978-0-13-235088-4: Book not available: 978-0-13-235088-4; "
            "to do so, it first failed to find book 978-0-13-235088-4, "
            "and went no further."
        )

    def test_nested_clauses_and_multiple_roots(self, context):
        record(
            context,
            "Api",
            "handle",
            "handled the request",
            children=[
                lambda: record(
                    context,
                    "Service",
                    "process",
                    "processed the order",
                    children=[lambda: record(context, "Repository", "save", "saved the order")],
                )
            ],
        )
        record(context, "Mailer", "send", "sent the receipt")

        text = ProseRenderer().render(context.capture_trace())

        assert text.splitlines() == [
            "Handled the request; to do so, it first processed the order "
            "(to do so, it first saved the order).",
            "Sent the receipt.",
        ]

    def test_nothing_after_failed_child(self, context):
        record(
            context,
            "Importer",
            "run",
            "ran the import",
            children=[
                lambda: record(context, "Importer", "read", "read the file"),
                lambda: record(context, "Importer", "parse", "parsed the rows", fail="ParseError"),
                lambda: record(context, "Importer", "report", "wrote the report"),
            ],
        )

        text = ProseRenderer().render(context.capture_trace())

        assert "wrote the report" not in text
        assert text.endswith("then Importer.parse() -> raised ParseError: failed, and went no further.")


class TestSequenceDiagrams:
    def test_mermaid_three_frame_layout(self, context, library):
        library.borrow_book(AVAILABLE_ISBN, "M-001")

        lines = MermaidSequenceRenderer().render(context.capture_trace()).splitlines()

        assert lines[:4] == [
            "sequenceDiagram",
            "    participant LendingService",
            "    participant CatalogService",
            "    participant MemberService",
        ]
        root_call = lines.index(
            "    LendingService->>LendingService: "
            "Borrowing book 978-0-13-468599-1 for member M-001"
        )
        find_call = lines.index(
            '    LendingService->>CatalogService: find_book(isbn="978-0-13-468599-1")'
        )
        find_return = next(i for i, l in enumerate(lines) if l.startswith("    CatalogService-->>"))
        lookup_call = lines.index(
            '    LendingService->>MemberService: lookup_member(member_id="M-001")'
        )
        lookup_return = next(i for i, l in enumerate(lines) if l.startswith("    MemberService-->>"))
        root_return = lines.index(
            '    LendingService-->>LendingService: Loan(isbn="978-0-13-468599-1", member_id="M-001")'
        )

        assert root_call < find_call < find_return < lookup_call < lookup_return < root_return
        assert lines[-1] == "    deactivate LendingService"

    def test_mermaid_failure_arrow(self, context, library):
        with pytest.raises(Exception):
            library.borrow_book(LENT_OUT_ISBN, "M-001")

        text = MermaidSequenceRenderer().render(context.capture_trace())

        assert (
            "    CatalogService--xLendingService: "
            "raised NotFound: Book not available: 978-0-13-235088-4"
        ) in text
        assert "MemberService" not in text

    def test_mermaid_escapes_special_characters(self, context):
        directive = NarrationDirective.build(template="Filed under #poetry; shelf {code}")
        handle = context.begin_call("Shelf", "file", [("code", "A1")], directive)
        context.end_call_success(handle)

        text = MermaidSequenceRenderer().render(context.capture_trace())

        assert "Shelf->>Shelf: Filed under #35;poetry#59; shelf A1" in text

    def test_participant_ids_are_sanitized(self, context):
        record(context, "lending.CatalogService", "find_book")
        record(context, "a-b", "x")
        record(context, "a_b", "y")

        trace = context.capture_trace()
        mermaid = MermaidSequenceRenderer().render(trace).splitlines()
        plantuml = PlantUmlSequenceRenderer().render(trace).splitlines()

        assert mermaid[1:4] == [
            "    participant lending_CatalogService as lending.CatalogService",
            "    participant a_b as a-b",
            "    participant a_b2 as a_b",
        ]
        assert plantuml[1] == 'participant "lending.CatalogService" as lending_CatalogService'

    def test_plantuml_layout(self, context, library):
        with pytest.raises(Exception):
            library.borrow_book(LENT_OUT_ISBN, "M-001")

        lines = PlantUmlSequenceRenderer().render(context.capture_trace()).splitlines()

        assert lines[0] == "@startuml"
        assert lines[-1] == "@enduml"
        assert 'LendingService -> CatalogService: find_book(isbn="978-0-13-235088-4")' in lines
        assert (
            "CatalogService -[#red]-> LendingService: "
            "raised NotFound: Book not available: 978-0-13-235088-4"
        ) in lines

    def test_pending_frame_has_no_return_but_is_deactivated(self, context):
        outer = context.begin_call("LendingService", "borrow_book")
        inner = context.begin_call("CatalogService", "find_book")
        context.end_call_success(inner, "book")

        lines = PlantUmlSequenceRenderer().render(context.capture_trace()).splitlines()

        assert "LendingService -> LendingService: borrow_book()" in lines
        assert not any(line.startswith("LendingService -->") for line in lines)
        assert lines[-2:] == ["deactivate LendingService", "@enduml"]
        activations = [l.split()[1] for l in lines if l.startswith("activate ")]
        deactivations = [l.split()[1] for l in lines if l.startswith("deactivate ")]
        assert sorted(activations) == sorted(deactivations)
        context.end_call_success(outer)

    def test_shared_traversal_is_abstract(self):
        with pytest.raises(TypeError):
            SequenceDiagramRenderer()

        class Partial(SequenceDiagramRenderer):
            def header(self):
                return ["diagram"]

        with pytest.raises(TypeError):
            Partial()


class TestRendererContract:
    def test_renderers_are_deterministic_and_pure(self, context, library):
        library.borrow_book(AVAILABLE_ISBN, "M-001")
        trace = context.capture_trace()
        before = trace.model_copy(deep=True)

        for renderer in ALL_RENDERERS:
            assert renderer.render(trace) == renderer.render(trace)
        assert trace == before

    def test_excluded_parameter_never_rendered(self, context):
        directive = NarrationDirective.build(
            template="Signing in {user} with {password}", exclude=["password"]
        )
        plain = NarrationDirective.build(exclude=["password"])
        outer = context.begin_call(
            "AuthService", "sign_in", [("user", "ada"), ("password", "s3cret")], directive
        )
        inner = context.begin_call(
            "CredentialStore", "verify", [("user", "ada"), ("password", "s3cret")], plain
        )
        context.end_call_error(inner, "AuthError", "rejected")
        context.end_call_success(outer, False)
        trace = context.capture_trace()

        outputs = [r.render(trace) for r in ALL_RENDERERS] + [JsonExporter().export(trace)]

        for output in outputs:
            assert "s3cret" not in output
        assert "Signing in ada with [hidden]" in outputs[0]

    def test_render_by_format_name(self, context, library):
        library.borrow_book(AVAILABLE_ISBN, "M-001")
        trace = context.capture_trace()

        assert render(trace) == IndentedTextRenderer().render(trace)
        assert render(trace, "mermaid").startswith("sequenceDiagram")
        assert render(trace, "plantuml").startswith("@startuml")
        assert render(trace, "prose").endswith(".")
        assert render(trace, "markdown").startswith("## LendingService.borrow_book")

    def test_unknown_format(self, context):
        with pytest.raises(ValueError, match="Unknown narrative format"):
            render(context.capture_trace(), "graphviz")
