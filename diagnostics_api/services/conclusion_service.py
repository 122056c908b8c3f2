"""
Conclusion synthesis.

Reduces an ordered step list to the ``final_conclusion`` stored on a
diagnostic log. Everything here is pure: the same steps always give the same
text.
"""

from typing import List, Optional

from diagnostics_api.models.diagnostics.enums import AccountStatus, StepKind, StepStatus
from diagnostics_api.models.diagnostics.steps import (
    BillingDetails, DiagnosticStep, ErrorDetails, UserStatusDetails
)

NO_ISSUES_CONCLUSION = "**All Clear:** No issues detected. All checks passed."
RECOMMENDATION_PREFIX = "**Recommendation:**"

_RECOMMENDATIONS = {
    StepKind.ROUTER: "Check router power/connectivity and the uplink to the Mikrotik.",
    StepKind.CPE: "Check the CPE device: power, cabling and PoE injector at the customer premises.",
    StepKind.AP: "Check the access point: power, uplink and alignment. Every station behind it is affected.",
    StepKind.NEIGHBOR_STATION: "Verify the access point topology data in the inventory.",
    StepKind.NEIGHBOR_APARTMENT: "Verify the building topology data in the inventory.",
    StepKind.USER_STATUS: "Verify the subscriber's PPPoE session and credentials.",
    StepKind.BILLING: "Ask the client to renew the subscription, then re-run the diagnostic.",
    StepKind.TARGET_LOOKUP: "Verify the device or subscriber identifier and that it exists in the inventory.",
    StepKind.TIMEOUT: "Re-run the diagnostic and check how responsive the gateway and devices are.",
    StepKind.INFRASTRUCTURE: "Check that the Device/Account Gateway is reachable, then re-run the diagnostic.",
}


def first_failure(steps: List[DiagnosticStep]) -> Optional[DiagnosticStep]:
    """Earliest Failure in pipeline order, the root cause of the run."""
    for step in steps:
        if step.status == StepStatus.FAILURE:
            return step
    return None


def recommendation_for(step: DiagnosticStep) -> str:
    if isinstance(step.details, ErrorDetails) and step.kind not in (StepKind.TIMEOUT, StepKind.INFRASTRUCTURE):
        return f"Re-run the diagnostic; the {step.step_name} could not reach the gateway or device."

    if isinstance(step.details, (BillingDetails, UserStatusDetails)):
        status = step.details.account_status
        if status == AccountStatus.EXPIRED:
            return "Ask the client to renew the subscription, then re-run the diagnostic."
        if status == AccountStatus.SUSPENDED:
            return "Review the suspension with billing before troubleshooting the network."

    return _RECOMMENDATIONS[step.kind]


def synthesize_conclusion(steps: List[DiagnosticStep]) -> str:
    """Build the final conclusion for an ordered list of completed steps."""
    if not steps:
        return "**Inconclusive:** No diagnostic steps were executed."

    root = first_failure(steps)
    if root is not None:
        return (
            f"**Root Cause:** {root.step_name} failed. {root.summary}\n"
            f"{RECOMMENDATION_PREFIX} {recommendation_for(root)}"
        )

    warnings = [step for step in steps if step.status == StepStatus.WARNING]
    if warnings:
        names = ", ".join(step.step_name for step in warnings)
        return (
            f"**Degraded:** Service is functioning but {names} reported warnings. {warnings[0].summary}\n"
            f"{RECOMMENDATION_PREFIX} Monitor the target and re-run the diagnostic if the warning persists."
        )

    skipped = sum(1 for step in steps if step.status == StepStatus.SKIPPED)
    if skipped:
        return f"**All Clear:** No issues detected. {skipped} check(s) were not applicable and were skipped."

    return NO_ISSUES_CONCLUSION
