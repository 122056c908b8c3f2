import pytest
from pydantic import ValidationError

from diagnostics_api.models.diagnostics.enums import StepKind, StepStatus
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.models.diagnostics.steps import DiagnosticStep, PingDetails, RouterDetails


def test_details_must_match_step_kind():
    with pytest.raises(ValidationError):
        DiagnosticStep(kind=StepKind.ROUTER, status=StepStatus.SUCCESS, summary="ok",
                       details=PingDetails(probe="Ping Station", device_id="st1", reachable=True))


def test_steps_are_immutable():
    step = DiagnosticStep(kind=StepKind.ROUTER, status=StepStatus.SUCCESS, summary="ok",
                          details=RouterDetails(router_id="r1", reachable=True))

    with pytest.raises(ValidationError):
        step.status = StepStatus.FAILURE


def test_step_round_trips_through_json_dump():
    step = DiagnosticStep.skipped(StepKind.AP, [StepKind.ROUTER])

    dumped = step.model_dump(mode="json")

    assert dumped["step_name"] == "AP Check"
    assert dumped["details"] == {"type": "skipped", "requires": ["Mikrotik Router Check"]}
    assert DiagnosticStep.model_validate(dumped) == step


def test_next_attempt_keeps_identity():
    job = DiagnosticJob(target_id="d1", user_checks=["u1"])

    retry = job.next_attempt()

    assert retry.attempt == 1
    assert retry.job_id == job.job_id
    assert retry.dedupe_key == job.dedupe_key == "diagnostic:d1"
    assert retry.user_checks == ["u1"]


def test_job_rejects_overlong_target_id():
    DiagnosticJob(target_id="x" * 100)

    with pytest.raises(ValidationError):
        DiagnosticJob(target_id="x" * 101)
