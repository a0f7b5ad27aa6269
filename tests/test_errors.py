"""Tests for the error hierarchy and CLI error handling."""

import pytest

from stackplan.core.errors import (
    ConfigurationError,
    CycleDetectedError,
    DeclarationError,
    ErrorKind,
    ExitCode,
    IncompatibleCapacitySourceError,
    InvalidDeclarationError,
    PlanNotReadyError,
    StackPlanError,
    ValidationIssue,
    format_error_message,
    main_with_error_handling,
)


class TestExitCodes:
    def test_values(self):
        assert ExitCode.SUCCESS == 0
        assert ExitCode.CONFIG_ERROR == 10
        assert ExitCode.VALIDATION_ERROR == 12
        assert ExitCode.PLAN_NOT_READY == 13
        assert ExitCode.UNKNOWN_ERROR == 127
        assert not hasattr(ExitCode, "WARNING")

    def test_error_exit_codes(self):
        assert ConfigurationError("x").exit_code == ExitCode.CONFIG_ERROR
        assert CycleDetectedError("x").exit_code == ExitCode.VALIDATION_ERROR
        assert PlanNotReadyError("x").exit_code == ExitCode.PLAN_NOT_READY


class TestDeclarationError:
    def test_to_issue(self):
        error = CycleDetectedError("cycle", subjects=["service/a", "service/b"])
        issue = error.to_issue()
        assert issue == ValidationIssue(
            kind=ErrorKind.CYCLE_DETECTED,
            message="cycle",
            subjects=("service/a", "service/b"),
        )
        assert str(issue) == "CycleDetected: cycle"

    def test_from_issue_picks_matching_class(self):
        issue = ValidationIssue(
            kind=ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE,
            message="no overlap",
            subjects=("service/web",),
            details={"offering_capabilities": ["FIXED_HOST"]},
        )
        error = DeclarationError.from_issue(issue)
        assert isinstance(error, IncompatibleCapacitySourceError)
        assert error.subjects == ("service/web",)
        assert error.details == {"offering_capabilities": ["FIXED_HOST"]}

    def test_every_kind_has_an_error_class(self):
        for kind in ErrorKind:
            issue = ValidationIssue(kind=kind, message="m")
            assert DeclarationError.from_issue(issue).kind is kind

    def test_issue_to_dict(self):
        issue = InvalidDeclarationError("bad weight", ["service/web"]).to_issue()
        assert issue.to_dict() == {
            "kind": "InvalidDeclaration",
            "message": "bad weight",
            "subjects": ["service/web"],
            "details": {},
        }


class TestMainWithErrorHandling:
    def test_success_passthrough(self):
        @main_with_error_handling()
        def command():
            return ExitCode.SUCCESS

        assert command() == ExitCode.SUCCESS

    def test_stackplan_error_maps_to_exit_code(self):
        @main_with_error_handling()
        def command():
            raise PlanNotReadyError("not validated")

        assert command() == ExitCode.PLAN_NOT_READY

    def test_unexpected_error(self):
        @main_with_error_handling()
        def command():
            raise RuntimeError("boom")

        assert command() == ExitCode.UNKNOWN_ERROR

    def test_keyboard_interrupt(self):
        @main_with_error_handling(log_errors=False)
        def command():
            raise KeyboardInterrupt

        assert command() == 130

    def test_show_traceback(self, capsys):
        @main_with_error_handling(show_traceback=True, log_errors=False)
        def command():
            raise ConfigurationError("broken")

        assert command() == ExitCode.CONFIG_ERROR
        assert "ConfigurationError" in capsys.readouterr().err


def test_format_error_message():
    error = StackPlanError("failed", details={"node": "service/web"})
    assert format_error_message(error) == "failed (node=service/web)"
    assert format_error_message(StackPlanError("plain")) == "plain"


def test_plan_not_ready_carries_issues():
    issue = ValidationIssue(kind=ErrorKind.CLUSTER_MISMATCH, message="m")
    with pytest.raises(PlanNotReadyError) as exc_info:
        raise PlanNotReadyError("invalid", issues=[issue])
    assert exc_info.value.issues == [issue]
