"""
Data Models for the Muse Generation Layer
=========================================

Pydantic models for provider requests, decoded completions, tool invocations,
speech directives and the usage ledger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConversationRole(str, Enum):
    """Roles accepted by the provider in conversation history"""
    USER = "user"
    MODEL = "model"


class ConversationTurn(BaseModel):
    role: ConversationRole
    content: str


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return {"text": self.text}


class InlineMediaPart(BaseModel):
    """Base64 media sent inline with the request (images, short video, pdf)"""
    kind: Literal["inline_media"] = "inline_media"
    mime_type: str
    data_base64: str

    def to_wire(self) -> Dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data_base64}}


class MediaReferencePart(BaseModel):
    """Media already uploaded to the provider, referenced by URI"""
    kind: Literal["media_reference"] = "media_reference"
    mime_type: str
    uri: str

    def to_wire(self) -> Dict[str, Any]:
        return {"fileData": {"mimeType": self.mime_type, "fileUri": self.uri}}


ContentPart = Union[TextPart, InlineMediaPart, MediaReferencePart]


class GenerationRequest(BaseModel):
    """
    One provider call worth of input, built per user turn and discarded afterwards.

    Web grounding and function-calling tools cannot be combined in a single
    provider call, so a request carrying both is rejected at construction.
    """

    system_instruction: str = ""
    conversation_history: List[ConversationTurn] = Field(default_factory=list)
    current_parts: List[ContentPart] = Field(default_factory=list)
    enabled_tools: List[Dict[str, Any]] = Field(default_factory=list)
    grounding_enabled: bool = False

    @model_validator(mode="after")
    def _grounding_excludes_tools(self) -> "GenerationRequest":
        if self.grounding_enabled and self.enabled_tools:
            raise ValueError("grounding_enabled and enabled_tools are mutually exclusive")
        return self

    def build_contents(self) -> List[Dict[str, Any]]:
        contents = [
            {"role": turn.role.value, "parts": [{"text": turn.content}]}
            for turn in self.conversation_history
        ]
        contents.append({
            "role": ConversationRole.USER.value,
            "parts": [part.to_wire() for part in self.current_parts],
        })
        return contents

    def build_config(self) -> Dict[str, Any]:
        provider_config: Dict[str, Any] = {}
        if self.system_instruction:
            provider_config["systemInstruction"] = {"parts": [{"text": self.system_instruction}]}
        if self.grounding_enabled:
            provider_config["tools"] = [{"googleSearch": {}}]
        elif self.enabled_tools:
            provider_config["tools"] = [{"functionDeclarations": list(self.enabled_tools)}]
        return provider_config


class ModelCandidate(BaseModel):
    """A model endpoint with its own timeout budget"""
    model_config = ConfigDict(frozen=True)

    identifier: str
    timeout_ms: int = Field(gt=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class ToolName(str, Enum):
    """Function-call names understood by the interpreter, valued by their wire name"""
    REPLACE_DOCUMENT = "updateEditor"
    APPEND_TO_DOCUMENT = "appendToEditor"
    CONFIGURE_SPEECH_STUDIO = "configureTTS"
    TRIGGER_SEARCH = "triggerChatSearch"
    LIST_MAIL = "listEmails"
    SEND_MAIL = "sendEmail"
    LIST_CALENDAR_EVENTS = "listCalendarEvents"
    CREATE_CALENDAR_EVENT = "createCalendarEvent"
    DELETE_CALENDAR_EVENT = "deleteCalendarEvent"

    @property
    def mutates_document(self) -> bool:
        return self in (ToolName.REPLACE_DOCUMENT, ToolName.APPEND_TO_DOCUMENT)


class ToolInvocation(BaseModel):
    name: ToolName
    arguments: Dict[str, Any] = Field(default_factory=dict)


class GroundingSource(BaseModel):
    title: str = ""
    uri: str


class CompletionResult(BaseModel):
    """Fully decoded text completion from one successful attempt"""
    text: str = ""
    tool_invocations: List[ToolInvocation] = Field(default_factory=list)
    grounding_sources: List[GroundingSource] = Field(default_factory=list)
    model: Optional[str] = None


class MutationKind(str, Enum):
    REPLACE = "replace"
    APPEND = "append"


class DocumentMutation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: MutationKind
    text: str


class InterpretedResponse(BaseModel):
    """User-facing text plus the actions extracted from a completion"""
    text: str
    mutation: Optional[DocumentMutation] = None
    side_invocations: List[ToolInvocation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Speech synthesis
# ---------------------------------------------------------------------------

class SpeakerSettings(BaseModel):
    persona: str = ""
    style: str = ""
    pacing: str = ""
    accent: str = ""


class SpeakerDirective(BaseModel):
    """Voice and delivery instructions bound to one character"""
    character_name: str
    voice_identifier: str
    settings: SpeakerSettings = Field(default_factory=SpeakerSettings)


class DirectorConfig(BaseModel):
    """Global audio direction applied to the whole transcript"""
    audio_profile: str = ""
    scene: str = ""
    style: str = ""
    pacing: str = ""
    accent: str = ""

    def is_empty(self) -> bool:
        return not any(
            value.strip()
            for value in (self.audio_profile, self.scene, self.style, self.pacing, self.accent)
        )


class VoiceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    gender: Literal["Male", "Female"]
    style: str


# ---------------------------------------------------------------------------
# Usage ledger
# ---------------------------------------------------------------------------

class Capability(str, Enum):
    """Metered capabilities tracked by the ledger"""
    VIDEO = "video"
    IMAGE = "image"
    VOICE_MINUTES = "voice_minutes"
    AUDIO_CHARS = "audio_chars"


class Feature(str, Enum):
    """Boolean entitlements that are not metered"""
    ENSEMBLE_CAST = "ensemble_cast"
    BIBLE = "bible"
    AUDIO_STUDIO = "audio_studio"
    VOICE_ASSISTANT = "voice_assistant"
    VEO = "veo"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    SCRIBE = "SCRIBE"
    AUTEUR = "AUTEUR"
    SHOWRUNNER = "SHOWRUNNER"

    @property
    def level(self) -> int:
        return list(SubscriptionTier).index(self)


class TierLimits(BaseModel):
    """Immutable per-tier allowances"""
    model_config = ConfigDict(frozen=True)

    display_name: str
    monthly_price: int = 0
    initial_balances: Dict[Capability, int] = Field(default_factory=dict)
    max_per_operation: Dict[Capability, int] = Field(default_factory=dict)
    has_voice_assistant: bool = False
    has_ensemble_cast: bool = False
    has_audio_studio: bool = False
    has_bible: bool = False
    has_veo: bool = False

    def initial_balance(self, capability: Capability) -> int:
        return self.initial_balances.get(capability, 0)

    def has_feature(self, feature: Feature) -> bool:
        return bool(getattr(self, f"has_{feature.value}"))


class UsageLedgerEntry(BaseModel):
    """Immutable signed record; negative for consumption, positive for grants"""
    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    capability: Capability
    signed_amount: int
    description: str = ""


class GateReason(str, Enum):
    TIER_LOCKED = "tier_locked"
    FEATURE_DISABLED = "feature_disabled"
    BALANCE_EXHAUSTED = "balance_exhausted"
    PER_OPERATION_CAP_EXCEEDED = "per_operation_cap_exceeded"


class GateDecision(BaseModel):
    allowed: bool
    reason: Optional[GateReason] = None
    message: str = ""


# ---------------------------------------------------------------------------
# Workspace assets
# ---------------------------------------------------------------------------

class AssetKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    LINK = "link"
    AUDIO = "audio"


class Asset(BaseModel):
    """User-supplied or generated media attached to a project"""
    asset_id: str = Field(default_factory=lambda: uuid4().hex)
    kind: AssetKind
    name: str = ""
    mime_type: str = "application/octet-stream"
    url: str = ""
    data_base64: Optional[str] = None

    def to_content_part(self) -> Optional[ContentPart]:
        """Provider part for attachable media; links and audio are not sent inline."""
        if self.kind not in (AssetKind.IMAGE, AssetKind.VIDEO, AssetKind.PDF):
            return None
        if self.data_base64:
            return InlineMediaPart(mime_type=self.mime_type, data_base64=self.data_base64)
        if self.url.startswith(("https://", "gs://")):
            return MediaReferencePart(mime_type=self.mime_type, uri=self.url)
        return None
