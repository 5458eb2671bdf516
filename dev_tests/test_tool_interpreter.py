"""
Tests for tool_interpreter.py and tool_catalog.py - mapping tool calls to document mutations.
"""

import pytest

from models import (
    CompletionResult,
    DocumentMutation,
    GroundingSource,
    MutationKind,
    ToolInvocation,
    ToolName,
)
from tool_catalog import TOOL_DECLARATIONS, WRITING_TOOLS, declarations_for, missing_arguments
from tool_interpreter import CONFIRMATIONS, apply_mutation, format_sources, interpret


def _call(name, **arguments):
    return ToolInvocation(name=name, arguments=arguments)


# ============================================================================
# Test Class: Mutation selection
# ============================================================================

class TestMutationSelection:
    """At most one document mutation is honored per response."""

    def test_replace_then_append_keeps_replace(self):
        """
        Given: A ReplaceDocument followed by an AppendToDocument
        When: interpret() is called
        Then: Only the replace mutation is returned
        """
        result = CompletionResult(tool_invocations=[
            _call(ToolName.REPLACE_DOCUMENT, newContent="Rewritten"),
            _call(ToolName.APPEND_TO_DOCUMENT, content="More"),
        ])

        interpreted = interpret(result)

        assert interpreted.mutation == DocumentMutation(kind=MutationKind.REPLACE, text="Rewritten")
        assert interpreted.side_invocations == []

    def test_append_first_wins_over_later_replace(self):
        result = CompletionResult(tool_invocations=[
            _call(ToolName.APPEND_TO_DOCUMENT, content="Chapter two"),
            _call(ToolName.REPLACE_DOCUMENT, newContent="Everything"),
        ])

        assert interpret(result).mutation.kind is MutationKind.APPEND

    def test_second_replace_is_ignored(self):
        result = CompletionResult(tool_invocations=[
            _call(ToolName.REPLACE_DOCUMENT, newContent="first"),
            _call(ToolName.REPLACE_DOCUMENT, newContent="second"),
        ])

        assert interpret(result).mutation.text == "first"

    def test_malformed_mutation_falls_through_to_next_valid(self):
        """
        Given: A replace missing newContent, then a valid append
        When: interpret() is called
        Then: The malformed call is dropped and the append is honored
        """
        result = CompletionResult(text="Done.", tool_invocations=[
            _call(ToolName.REPLACE_DOCUMENT),
            _call(ToolName.APPEND_TO_DOCUMENT, content="The end."),
        ])

        interpreted = interpret(result)

        assert interpreted.mutation == DocumentMutation(kind=MutationKind.APPEND, text="The end.")
        assert interpreted.text == "Done."

    @pytest.mark.parametrize("payload", [{"oops": 1}, ["a", "b"], 42])
    def test_non_text_mutation_payload_is_dropped(self, payload):
        """
        Given: A replace whose newContent is not a string
        When: interpret() is called
        Then: The call is dropped and the document is left untouched
        """
        result = CompletionResult(text="Here you go.", tool_invocations=[
            _call(ToolName.REPLACE_DOCUMENT, newContent=payload),
        ])

        interpreted = interpret(result)

        assert interpreted.mutation is None
        assert interpreted.text == "Here you go."


# ============================================================================
# Test Class: Side invocations
# ============================================================================

class TestSideInvocations:
    """Non-document tools are passed through independently."""

    def test_side_tools_coexist_with_mutation(self):
        """
        Given: A search, a mutation and a calendar event in one response
        When: interpret() is called
        Then: The mutation and both side invocations are returned, in order
        """
        search = _call(ToolName.TRIGGER_SEARCH, query="castle history")
        event = _call(ToolName.CREATE_CALENDAR_EVENT, summary="Draft due", start="2026-01-01T09:00", end="2026-01-01T10:00")
        result = CompletionResult(tool_invocations=[
            search,
            _call(ToolName.REPLACE_DOCUMENT, newContent="x"),
            event,
        ])

        interpreted = interpret(result)

        assert interpreted.mutation is not None
        assert interpreted.side_invocations == [search, event]

    def test_malformed_side_tool_is_dropped_text_survives(self):
        result = CompletionResult(text="Sending now.", tool_invocations=[
            _call(ToolName.SEND_MAIL, to="ed@example.com", subject="  "),
        ])

        interpreted = interpret(result)

        assert interpreted.side_invocations == []
        assert interpreted.text == "Sending now."

    def test_tools_without_required_arguments_pass(self):
        result = CompletionResult(tool_invocations=[_call(ToolName.LIST_MAIL)])
        assert interpret(result).side_invocations[0].name is ToolName.LIST_MAIL


# ============================================================================
# Test Class: User-facing text
# ============================================================================

class TestUserText:
    def test_empty_text_gets_confirmation(self):
        """
        Given: A replace mutation with no accompanying text
        When: interpret() is called
        Then: A rewrite confirmation is synthesized
        """
        result = CompletionResult(tool_invocations=[_call(ToolName.REPLACE_DOCUMENT, newContent="x")])
        assert interpret(result).text == CONFIRMATIONS[MutationKind.REPLACE]

    def test_append_confirmation(self):
        result = CompletionResult(text="  ", tool_invocations=[_call(ToolName.APPEND_TO_DOCUMENT, content="x")])
        assert interpret(result).text == CONFIRMATIONS[MutationKind.APPEND]

    def test_no_confirmation_without_mutation(self):
        assert interpret(CompletionResult(text="")).text == ""

    def test_sources_deduplicated_by_uri_in_first_seen_order(self):
        """
        Given: Sources [(T1,U1),(T2,U1),(T3,U2)]
        When: interpret() is called
        Then: Exactly two source entries are appended, U1 then U2
        """
        result = CompletionResult(text="Answer", grounding_sources=[
            GroundingSource(title="T1", uri="https://u1.example"),
            GroundingSource(title="T2", uri="https://u1.example"),
            GroundingSource(title="T3", uri="https://u2.example"),
        ])

        text = interpret(result).text

        assert text == (
            "Answer\n\n**Sources:**\n"
            "- [T1](https://u1.example)\n"
            "- [T3](https://u2.example)"
        )

    def test_untitled_source_label(self):
        assert format_sources([GroundingSource(uri="https://x.example")]) == "**Sources:**\n- [Source](https://x.example)"

    def test_no_sources_renders_nothing(self):
        assert format_sources([]) == ""


# ============================================================================
# Test Class: Applying mutations
# ============================================================================

class TestApplyMutation:
    def test_replace_and_append(self, buffer):
        apply_mutation(DocumentMutation(kind=MutationKind.APPEND, text=" The end."), buffer)
        assert buffer.text == "Once upon a time. The end."

        apply_mutation(DocumentMutation(kind=MutationKind.REPLACE, text="Fresh start."), buffer)
        assert buffer.text == "Fresh start."
        assert buffer.operations == ["append", "replace"]

    def test_none_is_a_no_op(self, buffer):
        assert apply_mutation(None, buffer) is False
        assert buffer.operations == []


# ============================================================================
# Test Class: Tool catalog
# ============================================================================

class TestToolCatalog:
    def test_every_tool_has_a_declaration(self):
        assert set(TOOL_DECLARATIONS) == set(ToolName)

    def test_writing_tools_declarations(self):
        names = [declaration["name"] for declaration in declarations_for(WRITING_TOOLS)]
        assert names == ["updateEditor", "appendToEditor", "configureTTS", "triggerChatSearch"]

    def test_missing_arguments_treats_blank_as_missing(self):
        assert missing_arguments(ToolName.SEND_MAIL, {"to": "a@b.c", "subject": "", "body": None}) == ["subject", "body"]

    def test_missing_arguments_checks_declared_type(self):
        assert missing_arguments(ToolName.APPEND_TO_DOCUMENT, {"content": 7}) == ["content"]
        assert missing_arguments(ToolName.APPEND_TO_DOCUMENT, {"content": "More."}) == []
