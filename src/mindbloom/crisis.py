# ==============================
# File: src/mindbloom/crisis.py
# ==============================
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .models import CrisisAlert, RecommendedAction, Severity

# Scanned in this order; the first tier with any hit wins.
CRISIS_KEYWORDS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.CRITICAL, ("suicide", "kill myself", "end it all", "not worth living", "want to die")),
    (Severity.HIGH, ("depressed", "hopeless", "worthless", "can't go on", "give up")),
    (Severity.MEDIUM, ("sad", "lonely", "anxious", "worried", "stressed")),
    (Severity.LOW, ("tired", "overwhelmed", "difficult", "challenging")),
)

SEVERITY_ACTIONS: Dict[Severity, RecommendedAction] = {
    Severity.CRITICAL: RecommendedAction.EMERGENCY,
    Severity.HIGH: RecommendedAction.ESCALATE,
    Severity.MEDIUM: RecommendedAction.MONITOR,
    Severity.LOW: RecommendedAction.MONITOR,
}


def classify(text: str) -> Optional[CrisisAlert]:
    """Map free text to a risk tier by plain substring matching.

    No word boundaries and no negation: "I don't want to die" hits
    "want to die", and "crusade" hits "sad".
    """
    low = (text or "").lower()
    if not low.strip():
        return None
    for severity, keywords in CRISIS_KEYWORDS:
        for keyword in keywords:
            if keyword in low:
                return CrisisAlert(
                    matched_keywords=frozenset([keyword]),
                    severity=severity,
                    recommended_action=SEVERITY_ACTIONS[severity],
                )
    return None


# ── Crisis alert surface ───────────────────────────────────────────────────

@dataclass(frozen=True)
class CrisisResource:
    name: str
    number: str
    available: str = "24/7"


@dataclass(frozen=True)
class CrisisGuidance:
    title: str
    message: str
    resources: Tuple[CrisisResource, ...]
    call_number: str = "988"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "callNumber": self.call_number,
            "resources": [
                {"name": r.name, "number": r.number, "available": r.available} for r in self.resources
            ],
        }


LIFELINE_988 = CrisisResource("Suicide & Crisis Lifeline", "988")
CRISIS_TEXT_LINE = CrisisResource("Crisis Text Line", "Text HOME to 741741")
EMERGENCY_SERVICES = CrisisResource("Emergency Services", "911")
SAMHSA_HELPLINE = CrisisResource("SAMHSA National Helpline", "1-800-662-4357")

_CRITICAL = CrisisGuidance(
    title="Immediate Support Available",
    message="Your safety is our top priority. Please reach out for immediate help.",
    resources=(LIFELINE_988, CRISIS_TEXT_LINE, EMERGENCY_SERVICES),
)
_HIGH = CrisisGuidance(
    title="Professional Support Recommended",
    message="We encourage you to reach out to a mental health professional or trusted person.",
    resources=(LIFELINE_988, CRISIS_TEXT_LINE, SAMHSA_HELPLINE),
)
_DEFAULT = CrisisGuidance(
    title="Support Resources",
    message="Here are some resources that might be helpful.",
    resources=(CRISIS_TEXT_LINE, SAMHSA_HELPLINE),
)


def guidance_for(alert: CrisisAlert) -> CrisisGuidance:
    if alert.severity is Severity.CRITICAL:
        return _CRITICAL
    if alert.severity is Severity.HIGH:
        return _HIGH
    return _DEFAULT
