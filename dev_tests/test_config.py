"""
Tests for config.py - candidate chains, environment overrides and the tier catalog.
"""

import pytest

from config import (
    AVAILABLE_VOICES,
    DEFAULT_TEXT_CANDIDATES,
    DEFAULT_VOICE,
    TIER_CATALOG,
    Config,
    get_tier_limits,
    is_known_voice,
    parse_candidates,
)
from models import Capability, Feature, SubscriptionTier


@pytest.fixture
def clean_env(monkeypatch):
    """Provide an environment without Muse overrides."""
    for name in ("MUSE_TEXT_MODELS", "MUSE_MEDIA_MODELS", "MUSE_VERBOSE", "GEMINI_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestParseCandidates:
    def test_parses_ordered_chain(self):
        """
        Given: "model:timeout_ms" entries separated by commas
        When: parse_candidates() is called
        Then: Candidates keep their order and timeouts
        """
        chain = parse_candidates("gemini-2.5-flash:90000, gemini-2.5-pro:180000")

        assert [c.identifier for c in chain] == ["gemini-2.5-flash", "gemini-2.5-pro"]
        assert chain[1].timeout_ms == 180000
        assert chain[0].timeout_seconds == 90.0

    def test_identifier_may_contain_colons(self):
        assert parse_candidates("tunedModels/x:v1:5000")[0].identifier == "tunedModels/x:v1"

    def test_empty_string_yields_nothing(self):
        assert parse_candidates(" , ") == ()

    @pytest.mark.parametrize("raw", ["no-timeout", "model:abc", ":1000"])
    def test_malformed_entries_raise(self, raw):
        with pytest.raises(ValueError):
            parse_candidates(raw)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValueError):
            parse_candidates("model:0")


class TestConfigEnvironment:
    def test_defaults(self, clean_env):
        cfg = Config()

        assert cfg.TEXT_MODEL_CANDIDATES == DEFAULT_TEXT_CANDIDATES
        assert cfg.VERBOSE is False
        assert cfg.MAX_VIDEO_PROMPT_SOURCE_CHARS == 2000

    def test_text_models_override(self, clean_env):
        clean_env.setenv("MUSE_TEXT_MODELS", "fast-model:1000,slow-model:9000")

        cfg = Config()

        assert [c.identifier for c in cfg.TEXT_MODEL_CANDIDATES] == ["fast-model", "slow-model"]

    @pytest.mark.parametrize("raw", ["broken", " , "])
    def test_bad_override_fails_loudly(self, clean_env, capsys, raw):
        """
        Given: MUSE_TEXT_MODELS is malformed or lists nothing
        When: Config() is constructed
        Then: RuntimeError is raised and the problem is printed to stderr
        """
        clean_env.setenv("MUSE_TEXT_MODELS", raw)

        with pytest.raises(RuntimeError):
            Config()

        assert "[CONFIG ERROR] MUSE_TEXT_MODELS" in capsys.readouterr().err

    def test_gemini_key_takes_precedence(self, clean_env):
        clean_env.setenv("GOOGLE_API_KEY", "google")
        clean_env.setenv("GEMINI_KEY", "gemini")

        assert Config().GOOGLE_API_KEY == "gemini"

    def test_verbose_flag(self, clean_env):
        clean_env.setenv("MUSE_VERBOSE", "yes")
        assert Config().VERBOSE is True


class TestTierCatalog:
    def test_every_tier_present(self):
        assert set(TIER_CATALOG) == set(SubscriptionTier)

    def test_scribe_row(self):
        limits = get_tier_limits(SubscriptionTier.SCRIBE)

        assert limits.initial_balance(Capability.AUDIO_CHARS) == 1000
        assert limits.max_per_operation[Capability.AUDIO_CHARS] == 1000
        assert limits.has_feature(Feature.AUDIO_STUDIO) is True
        assert limits.has_feature(Feature.ENSEMBLE_CAST) is False

    def test_free_tier_has_nothing(self):
        limits = get_tier_limits(SubscriptionTier.FREE)
        assert limits.initial_balances == {}
        assert not any(limits.has_feature(feature) for feature in Feature)

    def test_tiers_are_immutable(self):
        with pytest.raises(Exception):
            TIER_CATALOG[SubscriptionTier.SCRIBE].monthly_price = 0

    def test_tier_levels_ascend(self):
        levels = [tier.level for tier in SubscriptionTier]
        assert levels == sorted(levels)


class TestVoices:
    def test_default_voice_is_known(self):
        assert is_known_voice(DEFAULT_VOICE)
        assert not is_known_voice("Nobody")
        assert len(AVAILABLE_VOICES) == 30
