"""
Configuration for the Muse Generation Layer
===========================================

Central configuration for provider access, model candidate chains and the
subscription tier catalog. Values are read from the environment (and an
optional .env file) once, at import time.
"""

import os
import sys
from typing import Dict, List, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from models import Capability, ModelCandidate, SubscriptionTier, TierLimits, VoiceProfile

# Load environment variables from .env file
load_dotenv()


DEFAULT_TEXT_CANDIDATES: Tuple[ModelCandidate, ...] = (
    ModelCandidate(identifier="gemini-3-flash-preview", timeout_ms=60_000),
    ModelCandidate(identifier="gemini-2.5-flash", timeout_ms=90_000),
    ModelCandidate(identifier="gemini-2.5-pro", timeout_ms=180_000),
)

# Long-form video attachments need far more time before the first token
DEFAULT_MEDIA_CANDIDATES: Tuple[ModelCandidate, ...] = (
    ModelCandidate(identifier="gemini-3-flash-preview", timeout_ms=240_000),
    ModelCandidate(identifier="gemini-2.5-pro", timeout_ms=420_000),
)


def parse_candidates(raw: str) -> Tuple[ModelCandidate, ...]:
    """
    Parse a candidate chain from "model:timeout_ms,model:timeout_ms".

    Raises ValueError on a malformed entry; an empty string yields no candidates.
    """
    candidates: List[ModelCandidate] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        identifier, sep, timeout = chunk.rpartition(":")
        if not sep or not identifier:
            raise ValueError(f"Invalid model candidate entry '{chunk}', expected model:timeout_ms")
        candidates.append(ModelCandidate(identifier=identifier.strip(), timeout_ms=int(timeout)))
    return tuple(candidates)


class Config(BaseModel):
    """Configuration settings for the Muse generation layer."""

    GOOGLE_API_KEY: str = Field(default="", description="Google Gemini API key")
    GEMINI_API_BASE: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generateContent REST endpoint",
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Transport-level ceiling; per-candidate timeouts are enforced by the fallback chain",
    )

    TEXT_MODEL_CANDIDATES: Tuple[ModelCandidate, ...] = Field(default=DEFAULT_TEXT_CANDIDATES)
    MEDIA_MODEL_CANDIDATES: Tuple[ModelCandidate, ...] = Field(default=DEFAULT_MEDIA_CANDIDATES)
    IMAGE_MODEL: str = Field(default="gemini-3-pro-image-preview", description="Storyboard image model")
    TTS_MODEL: str = Field(default="gemini-2.5-flash-preview-tts", description="Speech synthesis model")
    TTS_TIMEOUT_MS: int = Field(default=120_000, gt=0, description="Timeout for one synthesis call")
    VIDEO_MODEL: str = Field(default="veo-3.1-fast-generate-preview", description="Video generation model")
    VIDEO_TIMEOUT_MS: int = Field(default=600_000, gt=0, description="Timeout for one video generation, polling included")
    VIDEO_POLL_INTERVAL_SECONDS: float = Field(default=5.0, gt=0, description="Delay between long-running operation polls")

    MAX_VIDEO_PROMPT_SOURCE_CHARS: int = Field(default=2000, ge=1)
    AUDIO_CHARS_PER_MINUTE: int = Field(default=900, ge=1, description="Rough speech rate used for minute estimates")

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    VERBOSE: bool = Field(default=False, description="Log prompts and responses")

    def __init__(self, **data):
        super().__init__(**data)
        self.load_from_environment()

    def load_from_environment(self):
        """Load configuration from environment variables."""
        self.GOOGLE_API_KEY = os.getenv("GEMINI_KEY", "") or os.getenv("GOOGLE_API_KEY", self.GOOGLE_API_KEY)
        self.GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", self.GEMINI_API_BASE).rstrip("/")
        self.HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", str(self.HTTP_TIMEOUT_SECONDS)))

        text_override = os.getenv("MUSE_TEXT_MODELS")
        if text_override:
            self.TEXT_MODEL_CANDIDATES = self._require_candidates("MUSE_TEXT_MODELS", text_override)
        media_override = os.getenv("MUSE_MEDIA_MODELS")
        if media_override:
            self.MEDIA_MODEL_CANDIDATES = self._require_candidates("MUSE_MEDIA_MODELS", media_override)

        self.IMAGE_MODEL = os.getenv("MUSE_IMAGE_MODEL", self.IMAGE_MODEL)
        self.TTS_MODEL = os.getenv("MUSE_TTS_MODEL", self.TTS_MODEL)
        self.TTS_TIMEOUT_MS = int(os.getenv("MUSE_TTS_TIMEOUT_MS", str(self.TTS_TIMEOUT_MS)))
        self.VIDEO_MODEL = os.getenv("MUSE_VIDEO_MODEL", self.VIDEO_MODEL)
        self.VIDEO_TIMEOUT_MS = int(os.getenv("MUSE_VIDEO_TIMEOUT_MS", str(self.VIDEO_TIMEOUT_MS)))

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL)
        self.VERBOSE = os.getenv("MUSE_VERBOSE", "false").lower() in {"1", "true", "yes", "on"}

    @staticmethod
    def _require_candidates(env_name: str, raw: str) -> Tuple[ModelCandidate, ...]:
        try:
            candidates = parse_candidates(raw)
        except ValueError as exc:
            msg = f"[CONFIG ERROR] {env_name} is malformed: {exc}"
            print(msg, file=sys.stderr, flush=True)
            raise RuntimeError(msg) from exc
        if not candidates:
            msg = f"[CONFIG ERROR] {env_name} is set but lists no models."
            print(msg, file=sys.stderr, flush=True)
            raise RuntimeError(msg)
        return candidates


# Global configuration instance
config = Config()


# Subscription catalog: read-only input to the usage ledger
TIER_CATALOG: Dict[SubscriptionTier, TierLimits] = {
    SubscriptionTier.FREE: TierLimits(
        display_name="Visitor",
        monthly_price=0,
    ),
    SubscriptionTier.SCRIBE: TierLimits(
        display_name="Scribe",
        monthly_price=29,
        initial_balances={
            Capability.IMAGE: 10,
            Capability.AUDIO_CHARS: 1000,
        },
        max_per_operation={Capability.AUDIO_CHARS: 1000},
        has_audio_studio=True,
        has_bible=True,
    ),
    SubscriptionTier.AUTEUR: TierLimits(
        display_name="Auteur",
        monthly_price=79,
        initial_balances={
            Capability.VIDEO: 3,
            Capability.IMAGE: 50,
            Capability.VOICE_MINUTES: 20,
            Capability.AUDIO_CHARS: 5000,
        },
        max_per_operation={Capability.AUDIO_CHARS: 5000},
        has_voice_assistant=True,
        has_ensemble_cast=True,
        has_audio_studio=True,
        has_bible=True,
        has_veo=True,
    ),
    SubscriptionTier.SHOWRUNNER: TierLimits(
        display_name="Showrunner",
        monthly_price=199,
        initial_balances={
            Capability.VIDEO: 10,
            Capability.IMAGE: 200,
            Capability.VOICE_MINUTES: 100,
            Capability.AUDIO_CHARS: 15000,
        },
        max_per_operation={Capability.AUDIO_CHARS: 15000},
        has_voice_assistant=True,
        has_ensemble_cast=True,
        has_audio_studio=True,
        has_bible=True,
        has_veo=True,
    ),
}


AVAILABLE_VOICES: Tuple[VoiceProfile, ...] = tuple(
    VoiceProfile(name=name, gender=gender, style=style)
    for name, gender, style in (
        ("Zephyr", "Female", "Bright"),
        ("Puck", "Male", "Upbeat"),
        ("Charon", "Male", "Informative"),
        ("Kore", "Female", "Firm"),
        ("Fenrir", "Male", "Excitable"),
        ("Leda", "Female", "Youthful"),
        ("Orus", "Male", "Firm"),
        ("Aoede", "Female", "Breezy"),
        ("Callirrhoe", "Female", "Easy-going"),
        ("Autonoe", "Female", "Bright"),
        ("Enceladus", "Male", "Breathy"),
        ("Iapetus", "Male", "Clear"),
        ("Umbriel", "Male", "Easy-going"),
        ("Algieba", "Male", "Smooth"),
        ("Despina", "Female", "Smooth"),
        ("Erinome", "Female", "Clear"),
        ("Algenib", "Male", "Gravelly"),
        ("Rasalgethi", "Female", "Informative"),
        ("Laomedeia", "Female", "Upbeat"),
        ("Achernar", "Male", "Soft"),
        ("Alnilam", "Male", "Firm"),
        ("Schedar", "Male", "Even"),
        ("Gacrux", "Female", "Mature"),
        ("Pulcherrima", "Female", "Forward"),
        ("Achird", "Female", "Friendly"),
        ("Zubenelgenubi", "Male", "Casual"),
        ("Vindemiatrix", "Female", "Gentle"),
        ("Sadachbia", "Female", "Lively"),
        ("Sadaltager", "Female", "Knowledgeable"),
        ("Sulafat", "Female", "Warm"),
    )
)

DEFAULT_VOICE = "Zephyr"


def get_tier_limits(tier: SubscriptionTier) -> TierLimits:
    """Return the catalog row for a tier."""
    return TIER_CATALOG[tier]


def is_known_voice(voice_name: str) -> bool:
    return any(voice.name == voice_name for voice in AVAILABLE_VOICES)
