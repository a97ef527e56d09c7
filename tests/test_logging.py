"""Tests for log formatting and credential masking."""

import json
import logging

from queuebot.core.logging_config import _ContextFilter, _JsonFormatter, command_id_var


def _record(msg, args=(), **extra):
    record = logging.LogRecord("queuebot.test", logging.INFO, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


def _format(record, secrets=()):
    _ContextFilter(secrets).filter(record)
    return json.loads(_JsonFormatter().format(record))


class TestJsonFormatter:
    def test_includes_command_id_and_extra(self):
        token = command_id_var.set("01ARZ3NDEKTSV4RRFFQ69G5FAV")
        try:
            payload = _format(_record("保存しました", title="Page1"))
        finally:
            command_id_var.reset(token)

        assert payload["message"] == "保存しました"
        assert payload["level"] == "INFO"
        assert payload["command_id"] == "01ARZ3NDEKTSV4RRFFQ69G5FAV"
        assert payload["title"] == "Page1"

    def test_no_command_id_outside_command(self):
        payload = _format(_record("idle"))
        assert "command_id" not in payload


class TestContextFilter:
    def test_stamps_command_id(self):
        record = _record("x")
        token = command_id_var.set("01ARZ3NDEKTSV4RRFFQ69G5FAV")
        try:
            _ContextFilter().filter(record)
        finally:
            command_id_var.reset(token)
        assert record.command_id == "01ARZ3NDEKTSV4RRFFQ69G5FAV"

    def test_masks_login_parameters(self):
        record = _record("login failed lgpassword=hunter2hunter2&lgtoken=abc+\\")
        _ContextFilter().filter(record)
        assert record.msg == "login failed lgpassword=***&lgtoken=***"

    def test_masks_bot_password_in_args(self):
        record = _record("response: %s", args=("bad password s3cretBotPw given",))
        _ContextFilter(secrets=["s3cretBotPw", ""]).filter(record)
        assert record.getMessage() == "response: bad password *** given"

    def test_leaves_mapping_args_alone(self):
        record = _record("%(title)s", args=({"title": "Page1"},))
        _ContextFilter().filter(record)
        assert record.getMessage() == "Page1"
