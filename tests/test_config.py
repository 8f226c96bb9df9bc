"""Tests for PipelineConfig validation and logging setup."""

import logging

import pytest
from pydantic import ValidationError

from chatsnap.log_config import configure_logging
from chatsnap.models.config import PRIMARY_TURN_SELECTOR, PipelineConfig


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.primary_selector == PRIMARY_TURN_SELECTOR
        assert config.import_depth == 5
        assert config.inline_fonts is True
        assert config.failed_link_policy == "keep"
        assert config.model_tag == "ChatGPT"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("import_depth", -1),
            ("import_depth", 21),
            ("failed_link_policy", "delete"),
            ("fetch_timeout", 0),
            ("max_concurrent_fetches", 0),
            ("parser", "html5"),
        ],
    )
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            PipelineConfig(**{field: value})


class TestConfigureLogging:
    def test_sets_root_level(self):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, list(root.handlers)
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
            assert any(isinstance(h, logging.StreamHandler) for h in root.handlers)
        finally:
            root.handlers[:] = previous_handlers
            root.setLevel(previous_level)
