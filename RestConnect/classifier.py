"""
Maps the outcome of one execution onto ResponseStatus.

ResponseStatus reports the client-side execution outcome only. Server-side
failures (4xx/5xx) that were transported successfully still classify as
COMPLETED; callers inspect the status code for those.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import AbortFault, DeserializationFault, RestConnectError, TimeoutFault, TransportFault
from .models import RawResponse, ResponseStatus, TransportOutcome


@dataclass(frozen=True)
class ExecutionOutcome:
    """Transport result, governor decision, decode fault and the decoded value."""
    raw: Optional[RawResponse] = None
    timed_out: bool = False
    aborted: bool = False
    deserialization_fault: Optional[DeserializationFault] = None
    error_message: Optional[str] = None
    data: Any = None


def classify(outcome: ExecutionOutcome) -> ResponseStatus:
    """Pure mapping; abort and timeout take precedence over anything observed later."""
    if outcome.aborted:
        return ResponseStatus.ABORTED
    if outcome.timed_out:
        return ResponseStatus.TIMED_OUT
    if outcome.raw is None:
        return ResponseStatus.ERROR
    if outcome.raw.outcome is TransportOutcome.CANCELED:
        return ResponseStatus.ABORTED
    # A hook fault overrides the transport outcome, failed or not.
    if outcome.deserialization_fault is not None:
        return ResponseStatus.ERROR
    if outcome.raw.outcome is TransportOutcome.TRANSPORT_ERROR:
        return ResponseStatus.ERROR
    return ResponseStatus.COMPLETED


def _has_deserialization_fault(outcome: ExecutionOutcome, status: ResponseStatus) -> bool:
    return status is ResponseStatus.ERROR and outcome.deserialization_fault is not None


def describe(outcome: ExecutionOutcome) -> Optional[str]:
    """Error message matching `classify(outcome)`; None for COMPLETED."""
    status = classify(outcome)
    if status is ResponseStatus.COMPLETED:
        return None
    if _has_deserialization_fault(outcome, status):
        return outcome.deserialization_fault.message
    if outcome.error_message:
        return outcome.error_message
    if outcome.raw is not None and outcome.raw.error_message:
        return outcome.raw.error_message
    if status is ResponseStatus.ABORTED:
        return "The request was aborted"
    if status is ResponseStatus.TIMED_OUT:
        return "The request timed out"
    return "The request failed"


def fault_for(outcome: ExecutionOutcome) -> Optional[RestConnectError]:
    """Build the fault object stored on the envelope."""
    status = classify(outcome)
    status_code = outcome.raw.status_code if outcome.raw is not None and outcome.raw.status_code else None
    message = describe(outcome)
    if status is ResponseStatus.COMPLETED:
        return None
    if status is ResponseStatus.ABORTED:
        return AbortFault(message)
    if status is ResponseStatus.TIMED_OUT:
        return TimeoutFault(message)
    if _has_deserialization_fault(outcome, status):
        return outcome.deserialization_fault
    return TransportFault(message, status_code=status_code)
