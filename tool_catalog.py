"""
Function declarations offered to the model, and the arguments each one requires.
"""

from typing import Any, Dict, List, Tuple

from models import ToolName


def _declaration(name: ToolName, description: str, properties: Dict[str, Dict[str, Any]], required: List[str]) -> Dict[str, Any]:
    return {
        "name": name.value,
        "description": description,
        "parameters": {
            "type": "OBJECT",
            "properties": properties,
            "required": required,
        },
    }


def _string(description: str) -> Dict[str, Any]:
    return {"type": "STRING", "description": description}


REPLACE_DOCUMENT_TOOL = _declaration(
    ToolName.REPLACE_DOCUMENT,
    "Replaces the whole text editor content. Use this for edits, rewrites or fixes when explicitly asked by the user.",
    {"newContent": _string("The full text content that should replace the current editor content.")},
    ["newContent"],
)

APPEND_TO_DOCUMENT_TOOL = _declaration(
    ToolName.APPEND_TO_DOCUMENT,
    "Appends new text to the end of the editor content without touching what is already there.",
    {"content": _string("The text to append to the editor.")},
    ["content"],
)

CONFIGURE_SPEECH_STUDIO_TOOL = _declaration(
    ToolName.CONFIGURE_SPEECH_STUDIO,
    "Prepares the audio studio: sets the script, voice mode and cast so the user can generate speech.",
    {
        "text": _string("The script to be spoken."),
        "mode": {"type": "STRING", "enum": ["single", "multi"], "description": "Single narrator or multi-voice cast."},
        "voice": _string("Voice name for single-voice mode."),
        "characters": {
            "type": "ARRAY",
            "description": "Cast for multi-voice mode (at most two are voiced).",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "character": _string("Character name as it appears in the script."),
                    "voice": _string("Voice name assigned to the character."),
                },
                "required": ["character", "voice"],
            },
        },
    },
    ["text"],
)

TRIGGER_SEARCH_TOOL = _declaration(
    ToolName.TRIGGER_SEARCH,
    "Triggers a web search in the main chat. Use when the user asks to search, look something up or find information online.",
    {"query": _string("The search query to execute in the chat.")},
    ["query"],
)

LIST_MAIL_TOOL = _declaration(
    ToolName.LIST_MAIL,
    "Lists recent emails from the user's inbox.",
    {
        "query": _string("Optional mailbox search query."),
        "maxResults": {"type": "INTEGER", "description": "Maximum number of messages to list."},
    },
    [],
)

SEND_MAIL_TOOL = _declaration(
    ToolName.SEND_MAIL,
    "Sends an email on the user's behalf after they have confirmed the draft.",
    {
        "to": _string("Recipient email address."),
        "subject": _string("Email subject line."),
        "body": _string("Plain-text email body."),
    },
    ["to", "subject", "body"],
)

LIST_CALENDAR_EVENTS_TOOL = _declaration(
    ToolName.LIST_CALENDAR_EVENTS,
    "Lists upcoming events from the user's primary calendar.",
    {
        "timeMin": _string("ISO 8601 start of the window."),
        "timeMax": _string("ISO 8601 end of the window."),
    },
    [],
)

CREATE_CALENDAR_EVENT_TOOL = _declaration(
    ToolName.CREATE_CALENDAR_EVENT,
    "Creates a calendar event.",
    {
        "summary": _string("Event title."),
        "start": _string("ISO 8601 start time."),
        "end": _string("ISO 8601 end time."),
        "description": _string("Optional event description."),
    },
    ["summary", "start", "end"],
)

DELETE_CALENDAR_EVENT_TOOL = _declaration(
    ToolName.DELETE_CALENDAR_EVENT,
    "Deletes a calendar event by id.",
    {"eventId": _string("Identifier of the event to delete.")},
    ["eventId"],
)


TOOL_DECLARATIONS: Dict[ToolName, Dict[str, Any]] = {
    ToolName.REPLACE_DOCUMENT: REPLACE_DOCUMENT_TOOL,
    ToolName.APPEND_TO_DOCUMENT: APPEND_TO_DOCUMENT_TOOL,
    ToolName.CONFIGURE_SPEECH_STUDIO: CONFIGURE_SPEECH_STUDIO_TOOL,
    ToolName.TRIGGER_SEARCH: TRIGGER_SEARCH_TOOL,
    ToolName.LIST_MAIL: LIST_MAIL_TOOL,
    ToolName.SEND_MAIL: SEND_MAIL_TOOL,
    ToolName.LIST_CALENDAR_EVENTS: LIST_CALENDAR_EVENTS_TOOL,
    ToolName.CREATE_CALENDAR_EVENT: CREATE_CALENDAR_EVENT_TOOL,
    ToolName.DELETE_CALENDAR_EVENT: DELETE_CALENDAR_EVENT_TOOL,
}

REQUIRED_ARGUMENTS: Dict[ToolName, Tuple[str, ...]] = {
    name: tuple(declaration["parameters"]["required"])
    for name, declaration in TOOL_DECLARATIONS.items()
}

WRITING_TOOLS: Tuple[ToolName, ...] = (
    ToolName.REPLACE_DOCUMENT,
    ToolName.APPEND_TO_DOCUMENT,
    ToolName.CONFIGURE_SPEECH_STUDIO,
    ToolName.TRIGGER_SEARCH,
)

WORKSPACE_TOOLS: Tuple[ToolName, ...] = (
    ToolName.LIST_MAIL,
    ToolName.SEND_MAIL,
    ToolName.LIST_CALENDAR_EVENTS,
    ToolName.CREATE_CALENDAR_EVENT,
    ToolName.DELETE_CALENDAR_EVENT,
)


def declarations_for(names: Tuple[ToolName, ...]) -> List[Dict[str, Any]]:
    return [TOOL_DECLARATIONS[name] for name in names]


def missing_arguments(name: ToolName, arguments: Dict[str, Any]) -> List[str]:
    """Return required arguments that are absent, blank or not of their declared type."""
    properties = TOOL_DECLARATIONS[name]["parameters"]["properties"] if name in TOOL_DECLARATIONS else {}
    missing = []
    for key in REQUIRED_ARGUMENTS.get(name, ()):
        value = arguments.get(key)
        declared = properties.get(key, {}).get("type")
        if value is None or (declared == "STRING" and not isinstance(value, str)):
            missing.append(key)
        elif isinstance(value, str) and not value.strip():
            missing.append(key)
    return missing
