import json
import logging
import sys

import pytest

from ecoquest.core.config import Settings, validate_config
from ecoquest.core.logging import JsonFormatter, request_id_ctx_var


def test_validate_config_warns_or_raises():
    cfg = Settings(DATABASE_URL=None)

    assert validate_config(strict=False, settings_obj=cfg) is False
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)
    assert validate_config(strict=True, settings_obj=Settings(DATABASE_URL="sqlite://")) is True


def test_settings_defaults():
    cfg = Settings()
    assert cfg.GPS_DEFAULT_RADIUS_METERS == 100.0
    assert cfg.QUIZ_DEFAULT_PASSING_SCORE == 0.8
    assert cfg.ON_DEMAND_COOLDOWN_MINUTES == 0


def test_json_formatter_carries_correlation_fields():
    record = logging.LogRecord("ecoquest.scoring", logging.INFO, __file__, 1, "points.awarded", None, None)
    record.request_id = "rid-9"
    record.user_id = "u1"
    record.event_type = "points.awarded"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["request_id"] == "rid-9"
    assert payload["user_id"] == "u1"
    assert payload["event_type"] == "points.awarded"
    assert "task_id" not in payload


def test_request_id_context_default():
    assert request_id_ctx_var.get() is None


def test_json_formatter_keeps_failed_award_step_context():
    logger = logging.getLogger("ecoquest.test")
    try:
        raise RuntimeError("neighborhood write failed")
    except RuntimeError:
        record = logger.makeRecord(
            "ecoquest.scoring",
            logging.ERROR,
            __file__,
            1,
            "points.award_step_failed",
            None,
            sys.exc_info(),
            extra={"step": "neighborhood", "user_id": "u1", "badge_id": None},
        )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["step"] == "neighborhood"
    assert payload["user_id"] == "u1"
    assert "badge_id" not in payload
    assert "neighborhood write failed" in payload["exc_info"]
