"""
Speech Directive Compositor
===========================

Builds the director's brief sent to the speech model from structured voice
settings, binds voices to speaker slots, and runs synthesis. Multi-voice
failures get exactly one repair pass: the transcript is rewritten into strict
"CharacterName: line" form and synthesis is retried once.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import json_utils as json
from completion_gateway import CompletionGateway
from config import DEFAULT_VOICE, config
from fallback_chain import GenerationError, run_candidates
from models import DirectorConfig, ModelCandidate, SpeakerDirective
from response_decoders import decode_text, decode_audio


logger = logging.getLogger(__name__)

# Provider hard cap on named speaker slots
MAX_SPEAKERS = 2

SYNTHESIS_FAILED_MESSAGE = "Failed to generate audio. Ensure your script uses the 'Character: Line' format."

Reformatter = Callable[[str, List[str]], Awaitable[str]]


class SynthesisFailed(RuntimeError):
    """Synthesis failed, after the repair pass where one applies."""

    def __init__(self, cause: BaseException, repair_attempted: bool = False):
        super().__init__(f"Speech synthesis failed: {cause}")
        self.cause = cause
        self.repair_attempted = repair_attempted
        self.user_message = SYNTHESIS_FAILED_MESSAGE


def _note_lines(style: str, pacing: str, accent: str) -> List[str]:
    lines = []
    if style.strip():
        lines.append(f"Style: {style.strip()}")
    if pacing.strip():
        lines.append(f"Pacing: {pacing.strip()}")
    if accent.strip():
        lines.append(f"Accent: {accent.strip()}")
    return lines


def _cast_lines(directives: Sequence[SpeakerDirective]) -> List[str]:
    lines = ["### CAST"]
    for directive in directives:
        settings = directive.settings
        lines.append(f"- {directive.character_name} (voice: {directive.voice_identifier})")
        if settings.persona.strip():
            lines.append(f"  Persona: {settings.persona.strip()}")
        # Every character always gets all three tags
        lines.append(f"  Style: {settings.style.strip() or 'Natural'}")
        lines.append(f"  Pacing: {settings.pacing.strip() or 'Natural'}")
        lines.append(f"  Accent: {settings.accent.strip() or 'Natural'}")
    return lines


def compose_brief(
    text: str,
    directives: Sequence[SpeakerDirective],
    global_style: Optional[DirectorConfig] = None,
    multi_voice: Optional[bool] = None,
) -> str:
    """
    Wrap a transcript in a director's brief when there is direction to give.

    Plain single-voice text with no global style is returned unchanged.
    """
    multi = len(directives) > 1 if multi_voice is None else multi_voice
    has_style = global_style is not None and not global_style.is_empty()
    if not multi and not has_style:
        return text

    sections: List[str] = []
    if has_style and global_style.audio_profile.strip():
        sections.append(f"# AUDIO PROFILE: {global_style.audio_profile.strip()}")
    if has_style and global_style.scene.strip():
        sections.append(f"## THE SCENE: {global_style.scene.strip()}")

    notes = _note_lines(global_style.style, global_style.pacing, global_style.accent) if has_style else []
    if notes:
        sections.append("\n".join(["### DIRECTOR'S NOTES"] + notes))

    if multi and directives:
        sections.append("\n".join(_cast_lines(directives)))

    sections.append(f"#### TRANSCRIPT\n{text}")
    return "\n\n".join(sections)


def build_speech_config(directives: Sequence[SpeakerDirective], multi_voice: Optional[bool] = None) -> Dict[str, Any]:
    """Bind voices to the provider's speech config; slots past the cap are dropped here."""
    multi = len(directives) > 1 if multi_voice is None else multi_voice
    if not multi:
        voice = directives[0].voice_identifier if directives else DEFAULT_VOICE
        return {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}}

    if len(directives) > MAX_SPEAKERS:
        dropped = ", ".join(d.character_name for d in directives[MAX_SPEAKERS:])
        logger.warning("Speech model supports %d speakers; dropping %s", MAX_SPEAKERS, dropped)

    return {
        "multiSpeakerVoiceConfig": {
            "speakerVoiceConfigs": [
                {
                    "speaker": directive.character_name,
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": directive.voice_identifier}},
                }
                for directive in directives[:MAX_SPEAKERS]
            ]
        }
    }


def build_reformat_prompt(text: str, character_names: Sequence[str]) -> str:
    names = ", ".join(character_names)
    narrator_rule = (
        "Narration may be attributed to Narrator."
        if "Narrator" in character_names
        else "Do NOT use 'Narrator' or any other unlisted name; attribute narration to the most fitting listed character."
    )
    return (
        "Rewrite the script below so that every spoken line has the exact form 'CharacterName: line'.\n"
        f"Allowed character names (use them exactly as written): {names}.\n"
        "Never invent a character name. "
        f"{narrator_rule}\n"
        "Keep the original wording and order of the lines. Output only the formatted script.\n\n"
        f'SCRIPT:\n"""\n{text}\n"""'
    )


async def format_script_for_speech(
    text: str,
    character_names: Sequence[str],
    *,
    gateway: Optional[CompletionGateway] = None,
    candidates: Optional[Sequence[ModelCandidate]] = None,
) -> str:
    """Rewrite a transcript into 'CharacterName: line' form restricted to the known cast."""
    if not character_names:
        raise ValueError("At least one character name is required to format a script")
    contents = [{"role": "user", "parts": [{"text": build_reformat_prompt(text, character_names)}]}]
    completion, _ = await run_candidates(
        contents,
        {"temperature": 0.2},
        candidates or config.TEXT_MODEL_CANDIDATES,
        decode_text,
        gateway=gateway,
        action="script formatting",
    )
    formatted = json.strip_code_fence(completion.text)
    if not formatted:
        raise ValueError("Script formatter returned no text")
    return formatted


class SpeechCompositor:
    """Composes briefs and runs speech synthesis with a single repair pass."""

    def __init__(
        self,
        gateway: Optional[CompletionGateway] = None,
        reformatter: Optional[Reformatter] = None,
        tts_candidate: Optional[ModelCandidate] = None,
    ):
        self.gateway = gateway
        self.reformatter = reformatter or self._default_reformatter
        self.tts_candidate = tts_candidate or ModelCandidate(
            identifier=config.TTS_MODEL, timeout_ms=config.TTS_TIMEOUT_MS
        )
        self.repair_attempts = 0

    async def _default_reformatter(self, text: str, character_names: List[str]) -> str:
        return await format_script_for_speech(text, character_names, gateway=self.gateway)

    async def _synthesize_once(self, brief: str, speech_config: Dict[str, Any]) -> bytes:
        contents = [{"role": "user", "parts": [{"text": brief}]}]
        provider_config = {"responseModalities": ["AUDIO"], "speechConfig": speech_config}
        completion, _ = await run_candidates(
            contents,
            provider_config,
            (self.tts_candidate,),
            decode_audio,
            gateway=self.gateway,
            action="speech synthesis",
        )
        return completion.audio

    async def synthesize(
        self,
        text: str,
        directives: Sequence[SpeakerDirective],
        global_style: Optional[DirectorConfig] = None,
        *,
        multi_voice: Optional[bool] = None,
    ) -> bytes:
        """
        Synthesize speech and return raw PCM bytes.

        Raises SynthesisFailed. In multi-voice mode the transcript is reformatted
        and synthesis retried exactly once before giving up; the error raised is
        always the one from the first attempt.
        """
        multi = len(directives) > 1 if multi_voice is None else multi_voice
        speech_config = build_speech_config(directives, multi_voice=multi)

        try:
            return await self._synthesize_once(
                compose_brief(text, directives, global_style, multi_voice=multi),
                speech_config,
            )
        except GenerationError as exc:
            original = exc

        if not multi:
            raise SynthesisFailed(original) from original

        self.repair_attempts += 1
        character_names = [directive.character_name for directive in directives]
        logger.warning("Multi-voice synthesis failed (%s); reformatting script and retrying once", original)

        try:
            reformatted = await self.reformatter(text, character_names)
            return await self._synthesize_once(
                compose_brief(reformatted, directives, global_style, multi_voice=multi),
                speech_config,
            )
        except Exception as retry_exc:
            logger.error("Speech repair attempt failed: %s", retry_exc)
            raise SynthesisFailed(original, repair_attempted=True) from original
