"""
Quote lifecycle: the legal-transition table and per-transition preconditions.

BUILDING -> DRAFT -> PRESENTED -> SIGNED -> COMPLETED, with CANCELLED and
EXPIRED as exits. COMPLETED and CANCELLED are terminal; EXPIRED can be
reactivated into BUILDING or DRAFT.

Everything here is pure and synchronous.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.user_role import UserRole, APPROVER_ROLES
from vision_pos.services.quotes.expiration_policy import is_expirable_status
from vision_pos.services.quotes.quote_requirements import StateRequirements

# =====================================================
# TRANSITION TABLE
# =====================================================
VALID_TRANSITIONS: dict[QuoteStatus, tuple[QuoteStatus, ...]] = {
    QuoteStatus.BUILDING: (
        QuoteStatus.DRAFT,
        QuoteStatus.PRESENTED,
        QuoteStatus.CANCELLED,
    ),
    QuoteStatus.DRAFT: (
        QuoteStatus.BUILDING,
        QuoteStatus.PRESENTED,
        QuoteStatus.CANCELLED,
        QuoteStatus.EXPIRED,
    ),
    QuoteStatus.PRESENTED: (
        QuoteStatus.BUILDING,
        QuoteStatus.DRAFT,
        QuoteStatus.SIGNED,
        QuoteStatus.CANCELLED,
        QuoteStatus.EXPIRED,
    ),
    QuoteStatus.SIGNED: (
        QuoteStatus.COMPLETED,
        QuoteStatus.CANCELLED,  # manager approval for non-managers
    ),
    QuoteStatus.COMPLETED: (),
    QuoteStatus.CANCELLED: (),
    QuoteStatus.EXPIRED: (
        QuoteStatus.BUILDING,
        QuoteStatus.DRAFT,
    ),
}

TERMINAL_STATES = frozenset({QuoteStatus.COMPLETED, QuoteStatus.CANCELLED})
EDITABLE_STATES = frozenset({QuoteStatus.BUILDING, QuoteStatus.DRAFT})
CUSTOMER_ACTION_STATES = frozenset({QuoteStatus.PRESENTED})


# =====================================================
# TRANSITION REASONS
# =====================================================
class ReasonCategory(str, enum.Enum):
    USER_ACTION = "USER_ACTION"
    SYSTEM_ACTION = "SYSTEM_ACTION"
    BUSINESS_RULE = "BUSINESS_RULE"


@dataclass(frozen=True)
class TransitionReason:
    reason: str
    category: ReasonCategory
    requires_manager_approval: bool = False


TRANSITION_REASONS: dict[tuple[QuoteStatus, QuoteStatus], TransitionReason] = {
    (QuoteStatus.BUILDING, QuoteStatus.DRAFT): TransitionReason(
        "Quote saved as draft", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.BUILDING, QuoteStatus.PRESENTED): TransitionReason(
        "Quote presented to customer", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.DRAFT, QuoteStatus.PRESENTED): TransitionReason(
        "Draft quote presented to customer", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.PRESENTED, QuoteStatus.SIGNED): TransitionReason(
        "Customer accepted and signed quote", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.SIGNED, QuoteStatus.COMPLETED): TransitionReason(
        "Quote fulfillment completed", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.DRAFT, QuoteStatus.EXPIRED): TransitionReason(
        "Quote auto-expired after inactivity", ReasonCategory.SYSTEM_ACTION
    ),
    (QuoteStatus.PRESENTED, QuoteStatus.EXPIRED): TransitionReason(
        "Presented quote auto-expired", ReasonCategory.SYSTEM_ACTION
    ),
    (QuoteStatus.SIGNED, QuoteStatus.CANCELLED): TransitionReason(
        "Signed quote cancelled", ReasonCategory.BUSINESS_RULE, requires_manager_approval=True
    ),
    (QuoteStatus.EXPIRED, QuoteStatus.BUILDING): TransitionReason(
        "Expired quote reactivated", ReasonCategory.USER_ACTION
    ),
    (QuoteStatus.EXPIRED, QuoteStatus.DRAFT): TransitionReason(
        "Expired quote reactivated as draft", ReasonCategory.USER_ACTION
    ),
}

_CANCELLED_REASON = TransitionReason("Quote cancelled", ReasonCategory.USER_ACTION)


def get_transition_reason(from_status, to_status) -> TransitionReason:
    from_status, to_status = QuoteStatus(from_status), QuoteStatus(to_status)
    known = TRANSITION_REASONS.get((from_status, to_status))
    if known:
        return known
    if to_status == QuoteStatus.CANCELLED:
        return _CANCELLED_REASON
    return TransitionReason(
        f"Status changed from {from_status.value} to {to_status.value}",
        ReasonCategory.USER_ACTION,
    )


def get_default_reason(from_status, to_status) -> str:
    return get_transition_reason(from_status, to_status).reason


# =====================================================
# DECISIONS
# =====================================================
class TransitionOutcome(str, enum.Enum):
    ALLOWED = "ALLOWED"
    BLOCKED = "BLOCKED"
    PENDING_APPROVAL = "PENDING_APPROVAL"


@dataclass(frozen=True)
class TransitionDecision:
    outcome: TransitionOutcome
    reason: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.outcome != TransitionOutcome.BLOCKED

    @property
    def requires_approval(self) -> bool:
        return self.outcome == TransitionOutcome.PENDING_APPROVAL


ALLOWED = TransitionDecision(TransitionOutcome.ALLOWED)


def _blocked(reason: str) -> TransitionDecision:
    return TransitionDecision(TransitionOutcome.BLOCKED, reason)


def is_approver(role) -> bool:
    if role is None:
        return False
    return str(getattr(role, "value", role)).upper() in {r.value for r in APPROVER_ROLES}


def can_transition(from_status, to_status) -> bool:
    return QuoteStatus(to_status) in VALID_TRANSITIONS[QuoteStatus(from_status)]


def validate_transition(
    from_status,
    to_status,
    requirements: StateRequirements,
    role=UserRole.SALES_ASSOCIATE,
) -> TransitionDecision:
    from_status, to_status = QuoteStatus(from_status), QuoteStatus(to_status)

    if not can_transition(from_status, to_status):
        return _blocked(f"Invalid transition from {from_status.value} to {to_status.value}")

    if to_status == QuoteStatus.DRAFT:
        if not requirements.has_valid_items:
            return _blocked("Quote must have at least one service or product before saving as draft")

    elif to_status == QuoteStatus.PRESENTED:
        if not requirements.has_customer_info:
            return _blocked("Customer information is required before presenting quote")
        if not requirements.has_valid_items:
            return _blocked("Quote must have services or products before presentation")

    elif to_status == QuoteStatus.SIGNED:
        if not requirements.has_required_signatures:
            return _blocked("All required signatures must be completed before marking as signed")
        if not requirements.has_payment_info:
            return _blocked("Payment information is required before marking as signed")

    elif to_status == QuoteStatus.COMPLETED:
        if from_status != QuoteStatus.SIGNED:
            return _blocked("Quote must be signed before completing")
        if not requirements.all_items_fulfilled:
            return _blocked("All items must be fulfilled before completing quote")

    elif to_status == QuoteStatus.CANCELLED:
        if from_status == QuoteStatus.SIGNED and not is_approver(role):
            return TransitionDecision(
                TransitionOutcome.PENDING_APPROVAL,
                "Manager approval required to cancel signed quote",
            )

    elif to_status == QuoteStatus.EXPIRED:
        if not is_expirable_status(from_status):
            return _blocked(f"Quotes in {from_status.value} cannot expire")

    return ALLOWED


def get_next_valid_states(
    from_status,
    requirements: StateRequirements,
    role=UserRole.SALES_ASSOCIATE,
) -> list[QuoteStatus]:
    from_status = QuoteStatus(from_status)
    return [
        target
        for target in VALID_TRANSITIONS[from_status]
        if validate_transition(from_status, target, requirements, role).valid
    ]


# =====================================================
# PRESENTATION METADATA
# =====================================================
_STATE_META: dict[QuoteStatus, tuple[str, str, str, str]] = {
    # label, description, color, icon
    QuoteStatus.BUILDING: ("Building", "Quote is being created or edited", "blue", "🔨"),
    QuoteStatus.DRAFT: ("Draft", "Quote saved as draft, not yet presented", "gray", "📝"),
    QuoteStatus.PRESENTED: ("Presented", "Quote presented to customer, awaiting response", "yellow", "👥"),
    QuoteStatus.SIGNED: ("Signed", "Customer signed quote, awaiting fulfillment", "purple", "✍️"),
    QuoteStatus.COMPLETED: ("Completed", "Quote fully completed and fulfilled", "green", "✅"),
    QuoteStatus.CANCELLED: ("Cancelled", "Quote cancelled by customer or staff", "red", "❌"),
    QuoteStatus.EXPIRED: ("Expired", "Quote expired due to time limit", "orange", "⏰"),
}


def get_state_label(status) -> str:
    return _STATE_META[QuoteStatus(status)][0]


def get_state_description(status) -> str:
    return _STATE_META[QuoteStatus(status)][1]


def get_state_color(status) -> str:
    return _STATE_META[QuoteStatus(status)][2]


def get_state_icon(status) -> str:
    return _STATE_META[QuoteStatus(status)][3]


def is_terminal_state(status) -> bool:
    return QuoteStatus(status) in TERMINAL_STATES


def can_edit_quote(status) -> bool:
    return QuoteStatus(status) in EDITABLE_STATES


def requires_customer_action(status) -> bool:
    return QuoteStatus(status) in CUSTOMER_ACTION_STATES
