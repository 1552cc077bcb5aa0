import pytest

from observatorydeploy.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("verification_failed", service="observatory", status="failed")

    assert "Service `observatory` did not report healthy" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("nope")
