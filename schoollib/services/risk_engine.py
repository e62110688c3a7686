"""
Rule-based risk classification for catalog and ledger mutations.

`evaluate_risk` is pure: it only looks at the before/after snapshots it is
given. Capturing those snapshots and persisting the outcome is the job of
the calling service and AuditService.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from schoollib.models.audit_log import AuditAction, ResourceType, RiskLevel

QUANTITY_CHANGE_THRESHOLD = 50.0  # percent
PRICE_CHANGE_THRESHOLD = 30.0  # percent

Snapshot = Optional[Dict[str, Any]]


@dataclass(frozen=True)
class RiskAssessment:
    is_risky: bool
    risk_level: RiskLevel
    notes: str


NOT_RISKY = RiskAssessment(is_risky=False, risk_level=RiskLevel.LOW, notes="")


def _percent_change(previous, new) -> Optional[float]:
    # Both values must be present and non-zero to express a relative change
    if not previous or not new:
        return None
    return abs(new - previous) / previous * 100


def evaluate_risk(
    action: Union[AuditAction, str],
    resource_type: Union[ResourceType, str],
    previous_state: Snapshot,
    new_state: Snapshot,
) -> RiskAssessment:
    """Classify a mutation. Rules are checked in priority order; first match wins."""
    action = AuditAction(action)
    resource_type = ResourceType(resource_type)
    previous = previous_state or {}
    new = new_state or {}

    if resource_type == ResourceType.BOOK:
        quantity_change = _percent_change(previous.get("quantity"), new.get("quantity"))
        if quantity_change is not None and quantity_change >= QUANTITY_CHANGE_THRESHOLD:
            return RiskAssessment(
                is_risky=True,
                risk_level=RiskLevel.HIGH,
                notes=f"Large quantity change detected ({quantity_change:.0f}% change)",
            )

        price_change = _percent_change(previous.get("price"), new.get("price"))
        if price_change is not None and price_change >= PRICE_CHANGE_THRESHOLD:
            return RiskAssessment(
                is_risky=True,
                risk_level=RiskLevel.HIGH,
                notes=f"Significant price change detected ({price_change:.0f}% change)",
            )

        if (
            action == AuditAction.DELETE
            and previous.get("available_quantity") != previous.get("quantity")
        ):
            return RiskAssessment(
                is_risky=True,
                risk_level=RiskLevel.HIGH,
                notes="Attempting to delete book with active loans",
            )

    if resource_type == ResourceType.TRANSACTION and action == AuditAction.UPDATE:
        if (
            previous.get("status") == "active"
            and new.get("status") == "returned"
            and not new.get("return_date")
        ):
            return RiskAssessment(
                is_risky=True,
                risk_level=RiskLevel.MEDIUM,
                notes="Transaction marked as returned without return date",
            )

    if resource_type == ResourceType.BOOK and action == AuditAction.UPDATE:
        if previous.get("status") != new.get("status"):
            return RiskAssessment(
                is_risky=True,
                risk_level=RiskLevel.LOW,
                notes=f"Book status changed from {previous.get('status')} to {new.get('status')}",
            )

    return NOT_RISKY
