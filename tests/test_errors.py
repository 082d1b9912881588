"""
Tests for the structured error types.
"""
from party_ai.core.errors import (
    ErrorCode,
    InvalidSnapshotError,
    PartyAIError,
    SettingsError,
    UnknownUnitError,
    ValidationError,
)


class TestPartyAIError:
    """Tests for the base error."""

    def test_defaults(self):
        error = PartyAIError()
        assert error.code == ErrorCode.UNKNOWN
        assert error.http_status == 500
        assert error.recoverable is True
        assert str(error) == "An unexpected error occurred"

    def test_to_dict(self):
        error = PartyAIError(
            code=ErrorCode.NOT_FOUND,
            message="Missing",
            details={"id": "x"},
            recovery_hint="Look again",
        )

        assert error.to_dict() == {
            "error": {
                "code": "NOT_FOUND",
                "message": "Missing",
                "details": {"id": "x"},
                "recoverable": True,
                "recovery_hint": "Look again",
            }
        }

    def test_repr(self):
        assert repr(SettingsError("Bad role")) == "SettingsError(code=SETTINGS_INVALID, message='Bad role')"


class TestSubclasses:
    """Tests for the concrete error types."""

    def test_invalid_snapshot(self):
        error = InvalidSnapshotError(details={"policy": "Tank"})
        assert error.code == ErrorCode.SNAPSHOT_INVALID
        assert error.http_status == 400
        assert error.recoverable is False
        assert error.details == {"policy": "Tank"}

    def test_unknown_unit(self):
        error = UnknownUnitError("ghost")
        assert error.http_status == 404
        assert error.details == {"unit_id": "ghost"}
        assert "ghost" in error.message

    def test_settings_error(self):
        error = SettingsError(details={"available": ["tank"]})
        assert error.code == ErrorCode.SETTINGS_INVALID
        assert error.http_status == 400

    def test_validation_error_details(self):
        error = ValidationError("Unit ids must be unique", field="units", errors=["hero"])
        assert error.http_status == 422
        assert error.details == {"field": "units", "errors": ["hero"]}

    def test_validation_error_without_details(self):
        assert ValidationError().details == {}

    def test_all_are_party_ai_errors(self):
        for error in (InvalidSnapshotError(), UnknownUnitError("x"), SettingsError(), ValidationError()):
            assert isinstance(error, PartyAIError)
