"""
Decoders for generateContent and long-running operation payloads.

Each call purpose gets its own completion kind (text/tool, image, audio, video) so
callers never probe optional fields of one generic shape. A payload that does
not match the expected kind raises MalformedResponseError, which the gateway
layer treats as a terminal failure of that attempt.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from completion_gateway import MalformedResponseError
from models import CompletionResult, GroundingSource, ToolInvocation, ToolName


logger = logging.getLogger(__name__)

_TOOL_NAMES = {tool.value: tool for tool in ToolName}


class TextCompletion(BaseModel):
    kind: Literal["text"] = "text"
    text: str = ""
    tool_invocations: List[ToolInvocation] = Field(default_factory=list)
    grounding_sources: List[GroundingSource] = Field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Dict[str, Any] = Field(default_factory=dict)

    def to_result(self, model: Optional[str] = None) -> CompletionResult:
        return CompletionResult(
            text=self.text,
            tool_invocations=list(self.tool_invocations),
            grounding_sources=list(self.grounding_sources),
            model=model,
        )


class ImageCompletion(BaseModel):
    kind: Literal["image"] = "image"
    mime_type: str
    data_base64: str
    caption: str = ""

    def as_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


class AudioCompletion(BaseModel):
    kind: Literal["audio"] = "audio"
    mime_type: str
    audio: bytes


class VideoCompletion(BaseModel):
    kind: Literal["video"] = "video"
    uri: str
    mime_type: str = "video/mp4"


Completion = Union[TextCompletion, ImageCompletion, AudioCompletion, VideoCompletion]


def _first_candidate(payload: Dict[str, Any]) -> Dict[str, Any]:
    candidates = payload.get("candidates")
    if not candidates:
        feedback = payload.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise MalformedResponseError(f"Prompt was blocked by the provider ({block_reason})")
        raise MalformedResponseError("Response contained no candidates")
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise MalformedResponseError("Response candidates are not a list of objects")
    return candidates[0]


def _parts(candidate: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = candidate.get("content")
    if content is None:
        return []
    if not isinstance(content, dict):
        raise MalformedResponseError("Candidate content is not an object")
    parts = content.get("parts") or []
    if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
        raise MalformedResponseError("Candidate parts are not a list of objects")
    return parts


def _grounding_sources(candidate: Dict[str, Any]) -> List[GroundingSource]:
    metadata = candidate.get("groundingMetadata") or {}
    sources = []
    for chunk in metadata.get("groundingChunks") or []:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if isinstance(web, dict) and web.get("uri"):
            sources.append(GroundingSource(title=web.get("title") or "", uri=web["uri"]))
    return sources


def decode_text(payload: Dict[str, Any]) -> TextCompletion:
    """Decode a text/tool completion."""
    candidate = _first_candidate(payload)
    text_parts: List[str] = []
    invocations: List[ToolInvocation] = []

    for part in _parts(candidate):
        if part.get("thought"):
            continue
        if isinstance(part.get("text"), str):
            text_parts.append(part["text"])
        call = part.get("functionCall")
        if isinstance(call, dict):
            tool = _TOOL_NAMES.get(call.get("name"))
            if tool is None:
                logger.debug("Ignoring unknown function call %r", call.get("name"))
                continue
            args = call.get("args")
            invocations.append(ToolInvocation(name=tool, arguments=args if isinstance(args, dict) else {}))

    return TextCompletion(
        text="".join(text_parts),
        tool_invocations=invocations,
        grounding_sources=_grounding_sources(candidate),
        finish_reason=candidate.get("finishReason"),
        usage=payload.get("usageMetadata") or {},
    )


def decode_image(payload: Dict[str, Any]) -> ImageCompletion:
    """Decode the first inline image of an image-generation response."""
    candidate = _first_candidate(payload)
    captions = []
    for part in _parts(candidate):
        inline = part.get("inlineData")
        if isinstance(inline, dict) and inline.get("data"):
            return ImageCompletion(
                mime_type=inline.get("mimeType") or "image/png",
                data_base64=inline["data"],
                caption="".join(captions),
            )
        if isinstance(part.get("text"), str):
            captions.append(part["text"])
    raise MalformedResponseError("No image data found in response")


def decode_audio(payload: Dict[str, Any]) -> AudioCompletion:
    """Decode the PCM audio returned by a speech-synthesis response."""
    candidate = _first_candidate(payload)
    for part in _parts(candidate):
        inline = part.get("inlineData")
        if isinstance(inline, dict) and inline.get("data"):
            try:
                audio = base64.b64decode(inline["data"], validate=True)
            except (binascii.Error, ValueError) as exc:
                raise MalformedResponseError(f"Audio payload is not valid base64: {exc}") from exc
            return AudioCompletion(mime_type=inline.get("mimeType") or "audio/L16;rate=24000", audio=audio)
    raise MalformedResponseError("No audio data found in response")


def decode_video(payload: Dict[str, Any]) -> VideoCompletion:
    """Decode the first generated video of a finished long-running operation."""
    response = payload.get("response")
    if not isinstance(response, dict):
        raise MalformedResponseError("Video operation finished without a response")
    generated = response.get("generateVideoResponse")
    samples = generated.get("generatedSamples") if isinstance(generated, dict) else None
    for sample in samples or []:
        video = sample.get("video") if isinstance(sample, dict) else None
        if isinstance(video, dict) and video.get("uri"):
            return VideoCompletion(uri=video["uri"], mime_type=video.get("mimeType") or "video/mp4")
    raise MalformedResponseError("Video URI not found in response")
