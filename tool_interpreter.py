"""
Tool-Call Interpreter
=====================

Turns a decoded completion into user-facing text, at most one document
mutation, and any other tool invocations the caller should act on.
"""

import logging
from typing import List, Optional

from interfaces import DocumentBuffer
from models import (
    CompletionResult,
    DocumentMutation,
    GroundingSource,
    InterpretedResponse,
    MutationKind,
    ToolInvocation,
    ToolName,
)
from tool_catalog import missing_arguments


logger = logging.getLogger(__name__)

MUTATION_ARGUMENT = {
    ToolName.REPLACE_DOCUMENT: ("newContent", MutationKind.REPLACE),
    ToolName.APPEND_TO_DOCUMENT: ("content", MutationKind.APPEND),
}

CONFIRMATIONS = {
    MutationKind.REPLACE: "I've rewritten the content in the editor.",
    MutationKind.APPEND: "I've appended new content to the editor.",
}


def _to_mutation(invocation: ToolInvocation) -> DocumentMutation:
    argument, kind = MUTATION_ARGUMENT[invocation.name]
    return DocumentMutation(kind=kind, text=invocation.arguments[argument])


def format_sources(sources: List[GroundingSource]) -> str:
    """Render grounding sources as a markdown list, one line per distinct URI."""
    seen = set()
    lines = []
    for source in sources:
        if source.uri in seen:
            continue
        seen.add(source.uri)
        lines.append(f"- [{source.title or 'Source'}]({source.uri})")
    if not lines:
        return ""
    return "**Sources:**\n" + "\n".join(lines)


def interpret(result: CompletionResult) -> InterpretedResponse:
    """
    Extract the document mutation and side actions from a completion.

    Only the first valid replace/append invocation is honored; later ones are
    ignored so a single response never applies two competing edits. Invocations
    missing a required argument are dropped without failing the response.
    """
    mutation: Optional[DocumentMutation] = None
    side_invocations: List[ToolInvocation] = []

    for invocation in result.tool_invocations:
        missing = missing_arguments(invocation.name, invocation.arguments)
        if missing:
            logger.debug("Dropping %s call missing %s", invocation.name.value, ", ".join(missing))
            continue

        if invocation.name.mutates_document:
            if mutation is not None:
                logger.debug("Ignoring extra %s call; document already mutated", invocation.name.value)
                continue
            mutation = _to_mutation(invocation)
        else:
            side_invocations.append(invocation)

    text = result.text
    if mutation is not None and not text.strip():
        text = CONFIRMATIONS[mutation.kind]

    sources = format_sources(result.grounding_sources)
    if sources:
        text = f"{text}\n\n{sources}" if text else sources

    return InterpretedResponse(text=text, mutation=mutation, side_invocations=side_invocations)


def apply_mutation(mutation: Optional[DocumentMutation], buffer: DocumentBuffer) -> bool:
    """Apply a mutation to the editor buffer. Returns True when something changed."""
    if mutation is None:
        return False
    if mutation.kind is MutationKind.REPLACE:
        buffer.replace(mutation.text)
    else:
        buffer.append(mutation.text)
    return True
