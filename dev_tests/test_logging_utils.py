"""
Tests for logging_utils.py - phase tracking and root logger setup.
"""

import logging

import pytest

from logging_utils import Phase, PhaseLogger, setup_logging


class TestPhaseLogger:
    def test_nested_phases_restore_parent(self):
        """
        Given: A TOOLS phase opened inside a GENERATION phase
        When: The inner phase exits
        Then: The current phase returns to GENERATION and both are timed
        """
        phase_logger = PhaseLogger(session_id="s1")

        with phase_logger.phase(Phase.GENERATION):
            with phase_logger.phase(Phase.TOOLS):
                assert phase_logger.current_phase == Phase.TOOLS
            assert phase_logger.current_phase == Phase.GENERATION

        assert phase_logger.current_phase is None
        assert set(phase_logger.get_timings()) == {Phase.GENERATION, Phase.TOOLS}

    def test_phase_closes_on_error(self):
        phase_logger = PhaseLogger(session_id="s1")

        with pytest.raises(RuntimeError):
            with phase_logger.phase(Phase.SPEECH):
                raise RuntimeError("boom")

        assert phase_logger.current_phase is None

    def test_prompts_logged_only_when_verbose(self, caplog):
        quiet = PhaseLogger(session_id="q", logger=logging.getLogger("muse.quiet"))
        loud = PhaseLogger(session_id="l", verbose=True, logger=logging.getLogger("muse.loud"))

        with caplog.at_level(logging.INFO):
            quiet.log_prompt("model-a", "system", "QUIET PROMPT")
            loud.log_prompt("model-a", "system", "LOUD PROMPT")

        assert "QUIET PROMPT" not in caplog.text
        assert "LOUD PROMPT" in caplog.text


class TestSetupLogging:
    def test_installs_single_handler(self):
        root = logging.getLogger()
        original_level = root.level
        try:
            setup_logging("debug")
            setup_logging("warning")

            marked = [handler for handler in root.handlers if getattr(handler, "_muse_handler", False)]
            assert len(marked) == 1
            assert root.level == logging.WARNING
        finally:
            for handler in [h for h in root.handlers if getattr(h, "_muse_handler", False)]:
                root.removeHandler(handler)
            root.setLevel(original_level)
