import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from mathstreak.core.balancing import DEV_BALANCING, PRODUCTION_BALANCING, StreakPolicy, get_balancing
from mathstreak.core.config import Settings, validate_config
from mathstreak.core.errors import (
    ConflictError,
    InsufficientFundsError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    error_for_reason,
)
from mathstreak.core.logging import JsonFormatter, bound_request_id, get_request_id, log_event


def test_settings_defaults():
    cfg = Settings()
    assert cfg.PROFILE == "production"
    assert cfg.STORAGE_BACKEND == "memory"


def test_settings_read_prefixed_env(monkeypatch):
    monkeypatch.setenv("MATHSTREAK_PROFILE", "dev")
    monkeypatch.setenv("MATHSTREAK_RNG_SEED", "99")
    cfg = Settings()
    assert cfg.PROFILE == "dev"
    assert cfg.RNG_SEED == 99


def test_validate_config_warns_in_lenient_mode(caplog):
    cfg = Settings(PROFILE="weekend")
    with caplog.at_level(logging.WARNING, logger="mathstreak"):
        assert validate_config(strict=False, settings_obj=cfg) is True
    assert "weekend" in caplog.text


def test_validate_config_raises_in_strict_mode():
    cfg = Settings(STORAGE_BACKEND="redis")
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)


def test_balancing_presets():
    assert get_balancing("dev") is DEV_BALANCING
    assert get_balancing("production") is PRODUCTION_BALANCING
    assert get_balancing("unknown") is PRODUCTION_BALANCING
    assert PRODUCTION_BALANCING.game.tasks_per_challenge == 8
    assert PRODUCTION_BALANCING.game.tasks_per_diamond == 80
    assert DEV_BALANCING.game.tasks_per_diamond == 4


def test_streak_policy_must_be_ordered():
    with pytest.raises(PydanticValidationError):
        StreakPolicy(freeze_gap=3, restorable_gap=3)


def test_error_for_reason_mapping():
    assert isinstance(error_for_reason("invalid_transition"), InvalidTransitionError)
    assert isinstance(error_for_reason("insufficient_funds"), InsufficientFundsError)
    assert isinstance(error_for_reason("not_found"), NotFoundError)
    assert isinstance(error_for_reason("invalid_amount"), ValidationError)
    conflict = error_for_reason("already_claimed")
    assert isinstance(conflict, ConflictError)
    assert conflict.code == "already_claimed"
    assert conflict.status_code == 409


def test_bound_request_id_scopes_context():
    assert get_request_id() is None
    with bound_request_id("session-1") as rid:
        assert rid == "session-1"
        assert get_request_id() == "session-1"
    assert get_request_id() is None


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("mathstreak", logging.INFO, __file__, 1, "diamonds.awarded", None, None)
    record.request_id = "rid-1"
    record.profile = "dev"
    record.event_type = "diamonds.awarded"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "diamonds.awarded"
    assert payload["request_id"] == "rid-1"
    assert payload["profile"] == "dev"
    assert payload["event_type"] == "diamonds.awarded"


def test_log_event_truncates_long_values(caplog):
    with caplog.at_level(logging.INFO, logger="mathstreak"):
        log_event("info", "test.event", event_type="test.event", extra={"blob": "x" * 2000})
    record = next(r for r in caplog.records if r.getMessage() == "test.event")
    assert record.blob.endswith("...<truncated>")
    assert len(record.blob) < 600


def test_json_formatter_includes_extra_payload():
    record = logging.LogRecord("mathstreak", logging.INFO, __file__, 1, "premium.rolled", None, None)
    record.date = "2024-03-04"
    record.balance = 3
    payload = json.loads(JsonFormatter().format(record))
    assert payload["date"] == "2024-03-04"
    assert payload["balance"] == 3
    assert "lineno" not in payload
    assert "args" not in payload
