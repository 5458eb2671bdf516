"""
Writing Session Orchestration
=============================

Wires the fallback chain, tool interpreter, speech compositor and usage ledger
into the operations the editor calls: a writing turn, media analysis, storyboard
images, video prompts and clips, character voice analysis, script formatting
and speech synthesis.

Every terminal failure is turned into a human-readable message returned in
place of the generated content.
"""

import logging
import time
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

import json_utils as json
from completion_gateway import CompletionGateway, get_gateway
from config import config
from fallback_chain import GenerationError, run_candidates, run_with_fallback
from interfaces import DocumentBuffer, PersistenceStore
from logging_utils import Phase, PhaseLogger
from models import (
    Asset,
    AssetKind,
    Capability,
    ContentPart,
    ConversationTurn,
    DirectorConfig,
    DocumentMutation,
    Feature,
    GenerationRequest,
    InlineMediaPart,
    ModelCandidate,
    SpeakerDirective,
    SpeakerSettings,
    TextPart,
    ToolInvocation,
)
from prompt_templates import (
    MEDIA_ANALYSIS_INSTRUCTION,
    ProjectType,
    build_character_style_request,
    build_context_links_block,
    build_link_reference,
    build_system_instruction,
    build_video_prompt_request,
)
from response_decoders import ImageCompletion, VideoCompletion, decode_image, decode_text, decode_video
from speech_compositor import SpeechCompositor, SynthesisFailed, format_script_for_speech
from tool_catalog import WRITING_TOOLS, declarations_for
from tool_interpreter import apply_mutation, format_sources, interpret
from usage_ledger import UsageLedger
from workspace_sync import persist_in_background


logger = logging.getLogger(__name__)

IMAGE_TIMEOUT_MS = 120_000
ASPECT_RATIOS = ("16:9", "1:1", "9:16")
VIDEO_PARAMETERS = {"aspectRatio": "16:9", "resolution": "720p"}


class WritingTurn(BaseModel):
    """Outcome of one chat turn"""
    text: str
    mutation: Optional[DocumentMutation] = None
    side_invocations: List[ToolInvocation] = Field(default_factory=list)
    model: Optional[str] = None
    failed: bool = False


class ImageOutcome(BaseModel):
    image: Optional[ImageCompletion] = None
    message: str = ""


class SpeechOutcome(BaseModel):
    audio: Optional[bytes] = None
    message: str = ""


class VideoOutcome(BaseModel):
    video: Optional[VideoCompletion] = None
    message: str = ""


class WritingSession:
    """Generation entry points for one editing session."""

    def __init__(
        self,
        buffer: DocumentBuffer,
        ledger: UsageLedger,
        store: Optional[PersistenceStore] = None,
        *,
        gateway: Optional[CompletionGateway] = None,
        compositor: Optional[SpeechCompositor] = None,
        text_candidates: Optional[Sequence[ModelCandidate]] = None,
        media_candidates: Optional[Sequence[ModelCandidate]] = None,
        session_id: str = "session",
        verbose: Optional[bool] = None,
    ):
        self.buffer = buffer
        self.ledger = ledger
        self.store = store
        self.gateway = gateway or get_gateway()
        self.compositor = compositor or SpeechCompositor(gateway=self.gateway)
        self.text_candidates = tuple(text_candidates or config.TEXT_MODEL_CANDIDATES)
        self.media_candidates = tuple(media_candidates or config.MEDIA_MODEL_CANDIDATES)
        self.phase_logger = PhaseLogger(
            session_id=session_id,
            verbose=config.VERBOSE if verbose is None else verbose,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Writing turns
    # ------------------------------------------------------------------

    def build_request(
        self,
        prompt: str,
        project_type: ProjectType,
        assets: Sequence[Asset] = (),
        history: Sequence[ConversationTurn] = (),
        use_search: bool = False,
    ) -> GenerationRequest:
        """Assemble the provider request for a writing turn."""
        parts = [part for part in (asset.to_content_part() for asset in assets) if part is not None]

        links = [asset.url for asset in assets if asset.kind is AssetKind.LINK and asset.url]
        text = prompt + build_context_links_block(links) if links else prompt
        parts.append(TextPart(text=text))

        # Grounding and function tools cannot share a call; links need grounding
        grounding = use_search or bool(links)
        return GenerationRequest(
            system_instruction=build_system_instruction(project_type, self.buffer.text),
            conversation_history=list(history),
            current_parts=parts,
            enabled_tools=[] if grounding else declarations_for(WRITING_TOOLS),
            grounding_enabled=grounding,
        )

    def _candidates_for(self, assets: Sequence[Asset]) -> Sequence[ModelCandidate]:
        if any(asset.kind is AssetKind.VIDEO for asset in assets):
            return self.media_candidates
        return self.text_candidates

    def _snapshot_document(self, description: str) -> None:
        if self.store is None:
            return
        persist_in_background(self.store, "version", {
            "id": f"v{int(time.time() * 1000)}",
            "timestamp": int(time.time() * 1000),
            "content": self.buffer.text,
            "description": description,
        })

    async def generate_writing(
        self,
        prompt: str,
        project_type: ProjectType = ProjectType.GENERAL,
        assets: Sequence[Asset] = (),
        history: Sequence[ConversationTurn] = (),
        use_search: bool = False,
    ) -> WritingTurn:
        """Run one chat turn and apply any document mutation to the buffer."""
        request = self.build_request(prompt, project_type, assets, history, use_search)

        with self.phase_logger.phase(Phase.GENERATION, sub_label=project_type.value):
            self.phase_logger.log_prompt("fallback chain", request.system_instruction, prompt)
            try:
                result = await run_with_fallback(request, self._candidates_for(assets), gateway=self.gateway)
            except GenerationError as exc:
                self.phase_logger.error(str(exc))
                return WritingTurn(text=exc.user_message, failed=True)
            self.phase_logger.log_response(result.model or "unknown", result.text)

        with self.phase_logger.phase(Phase.TOOLS):
            interpreted = interpret(result)
            if interpreted.mutation is not None:
                self._snapshot_document(f"Before AI {interpreted.mutation.kind.value}")
                apply_mutation(interpreted.mutation, self.buffer)
                self.phase_logger.log_decision("APPLIED", interpreted.mutation.kind.value)
            for invocation in interpreted.side_invocations:
                self.phase_logger.info(f"Side action requested: {invocation.name.value}")

        return WritingTurn(
            text=interpreted.text,
            mutation=interpreted.mutation,
            side_invocations=interpreted.side_invocations,
            model=result.model,
        )

    async def analyze_media_context(self, assets: Sequence[Asset]) -> str:
        """
        Describe the mood, content and story potential of the attached assets.

        Links are passed as references and switch the call to web grounding;
        grounding sources are appended as a deduplicated Sources block.
        """
        if not assets:
            return "No media to analyze."

        parts: List[ContentPart] = []
        for asset in assets:
            if asset.kind is AssetKind.LINK:
                if asset.url:
                    parts.append(TextPart(text=build_link_reference(asset.url)))
                continue
            part = asset.to_content_part()
            if part is not None:
                parts.append(part)
        parts.append(TextPart(text=MEDIA_ANALYSIS_INSTRUCTION))

        request = GenerationRequest(
            current_parts=parts,
            grounding_enabled=any(asset.kind is AssetKind.LINK for asset in assets),
        )
        with self.phase_logger.phase(Phase.GENERATION, sub_label="media analysis"):
            try:
                result = await run_with_fallback(request, self._candidates_for(assets), gateway=self.gateway)
            except GenerationError as exc:
                self.phase_logger.error(str(exc))
                return exc.user_message
            self.phase_logger.log_response(result.model or "unknown", result.text)

        text = result.text or "Analysis failed."
        sources = format_sources(result.grounding_sources)
        return f"{text}\n\n{sources}" if sources else text

    # ------------------------------------------------------------------
    # Auxiliary generation
    # ------------------------------------------------------------------

    async def generate_video_prompt(self, text: str) -> str:
        source = text[: config.MAX_VIDEO_PROMPT_SOURCE_CHARS]
        contents = [{"role": "user", "parts": [{"text": build_video_prompt_request(source)}]}]
        try:
            completion, _ = await run_candidates(
                contents, {}, self.text_candidates, decode_text, gateway=self.gateway, action="video prompt"
            )
        except GenerationError as exc:
            return exc.user_message
        return completion.text.strip()

    async def analyze_character_style(self, description: str) -> SpeakerSettings:
        """Derive voice settings for a character; raises GenerationError or ValueError."""
        contents = [{"role": "user", "parts": [{"text": build_character_style_request(description)}]}]
        completion, _ = await run_candidates(
            contents,
            {"responseMimeType": "application/json"},
            self.text_candidates,
            decode_text,
            gateway=self.gateway,
            action="character style analysis",
        )
        parsed = json.loads_object(completion.text)
        return SpeakerSettings(**{
            key: str(parsed.get(key) or "")
            for key in ("persona", "style", "pacing", "accent")
        })

    async def format_script(self, text: str, character_names: Sequence[str]) -> str:
        return await format_script_for_speech(
            text, list(character_names), gateway=self.gateway, candidates=self.text_candidates
        )

    async def generate_storyboard_image(self, prompt: str, aspect_ratio: str = "16:9") -> ImageOutcome:
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio}; expected one of {ASPECT_RATIOS}")
        if not self.ledger.check_limit(Capability.IMAGE, 1):
            return ImageOutcome(message=self.ledger.evaluate(Capability.IMAGE, 1).message)

        with self.phase_logger.phase(Phase.IMAGE):
            contents = [{"role": "user", "parts": [{"text": prompt}]}]
            provider_config = {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            }
            try:
                image, _ = await run_candidates(
                    contents,
                    provider_config,
                    (ModelCandidate(identifier=config.IMAGE_MODEL, timeout_ms=IMAGE_TIMEOUT_MS),),
                    decode_image,
                    gateway=self.gateway,
                    action="image generation",
                )
            except GenerationError as exc:
                self.phase_logger.error(str(exc))
                return ImageOutcome(message=exc.user_message)

        with self.phase_logger.phase(Phase.LEDGER):
            self.ledger.track_usage(Capability.IMAGE, 1)

        if self.store is not None:
            asset = Asset(kind=AssetKind.IMAGE, name=f"Storyboard - {prompt[:40]}", mime_type=image.mime_type,
                          data_base64=image.data_base64)
            persist_in_background(self.store, "asset", asset.model_dump(mode="json"))
        return ImageOutcome(image=image)

    async def generate_video(
        self,
        prompt: str,
        image_base64: Optional[str] = None,
        image_mime_type: str = "image/png",
    ) -> VideoOutcome:
        """Generate one 16:9 clip, optionally seeded by a still image, and charge one video."""
        if not prompt.strip():
            return VideoOutcome(message="Please describe the video you want to generate.")
        if not self.ledger.check_limit(Capability.VIDEO, 1):
            return VideoOutcome(message=self.ledger.evaluate(Capability.VIDEO, 1).message)

        parts: List[ContentPart] = []
        if image_base64:
            parts.append(InlineMediaPart(mime_type=image_mime_type, data_base64=image_base64))
        parts.append(TextPart(text=prompt))
        contents = [{"role": "user", "parts": [part.to_wire() for part in parts]}]

        with self.phase_logger.phase(Phase.VIDEO):
            try:
                video, _ = await run_candidates(
                    contents,
                    dict(VIDEO_PARAMETERS),
                    (ModelCandidate(identifier=config.VIDEO_MODEL, timeout_ms=config.VIDEO_TIMEOUT_MS),),
                    decode_video,
                    gateway=self.gateway,
                    action="video generation",
                )
            except GenerationError as exc:
                self.phase_logger.error(str(exc))
                return VideoOutcome(message=exc.user_message)

        with self.phase_logger.phase(Phase.LEDGER):
            self.ledger.track_usage(Capability.VIDEO, 1)

        if self.store is not None:
            asset = Asset(kind=AssetKind.VIDEO, name="Generated Video", mime_type=video.mime_type, url=video.uri)
            persist_in_background(self.store, "asset", asset.model_dump(mode="json"))
        return VideoOutcome(video=video)

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    async def speak(
        self,
        text: str,
        directives: Sequence[SpeakerDirective],
        global_style: Optional[DirectorConfig] = None,
        *,
        multi_voice: Optional[bool] = None,
    ) -> SpeechOutcome:
        """Gate, synthesize and meter one audio studio generation."""
        if not text.strip():
            return SpeechOutcome(message="Please enter some text to speak.")

        multi = len(directives) > 1 if multi_voice is None else multi_voice
        if multi and not directives:
            return SpeechOutcome(message="Please add at least one character.")
        if multi and not self.ledger.check_feature(Feature.ENSEMBLE_CAST):
            return SpeechOutcome(message="Multi-voice casts are not included in your plan.")

        characters = len(text)
        if not self.ledger.check_limit(Capability.AUDIO_CHARS, characters):
            return SpeechOutcome(message=self.ledger.evaluate(Capability.AUDIO_CHARS, characters).message)

        with self.phase_logger.phase(Phase.SPEECH, sub_label="multi" if multi else "single"):
            try:
                audio = await self.compositor.synthesize(text, directives, global_style, multi_voice=multi)
            except SynthesisFailed as exc:
                self.phase_logger.error(str(exc))
                return SpeechOutcome(message=exc.user_message)

        with self.phase_logger.phase(Phase.LEDGER):
            self.ledger.track_usage(Capability.AUDIO_CHARS, characters)
        return SpeechOutcome(audio=audio)
