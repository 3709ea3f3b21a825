"""
Layered validation for quote status changes.

Runs, in order: the transition table, role permissions, content
requirements, business rules and timing advisories. Every layer can add
hard errors, warnings, or an approval request. The public entry point never
raises; internal failures come back as a single generic error.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from zoneinfo import ZoneInfo

from vision_pos.core.config import (
    BUSINESS_TZ,
    HIGH_VALUE_QUOTE_THRESHOLD,
    QUOTE_STALE_AFTER_DAYS,
)
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.user_role import COMPLETION_ROLES
from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot
from vision_pos.schemas.quotes.quote_status_schemas import OverrideFlags
from vision_pos.services.quotes.expiration_policy import (
    as_utc,
    expiration_policy,
    is_expirable_status,
)
from vision_pos.services.quotes.quote_requirements import check_state_requirements, required_signatures
from vision_pos.services.quotes.quote_state_machine import can_transition, is_approver

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal validation error occurred"
SYSTEM_USER_ID = "system"


@dataclass(frozen=True)
class ActorContext:
    user_id: Optional[Union[int, str]]
    role: str
    location_id: Optional[str] = None
    is_system: bool = False

    @property
    def is_approver(self) -> bool:
        return is_approver(self.role)


SYSTEM_ACTOR = ActorContext(user_id=SYSTEM_USER_ID, role="SYSTEM", is_system=True)


@dataclass
class ValidationContext:
    quote: QuoteSnapshot
    target_status: QuoteStatus
    actor: ActorContext
    reason: Optional[str] = None
    override_flags: OverrideFlags = field(default_factory=OverrideFlags)
    # Status of the quote referenced by second_pair_of_id, looked up by the caller
    second_pair_original_status: Optional[QuoteStatus] = None
    now: Optional[datetime] = None


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    requires_approval: bool = False
    approval_reason: Optional[str] = None

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def require_approval(self, reason: str) -> None:
        self.requires_approval = True
        self.approval_reason = reason

    def merge(self, other: "ValidationResult") -> None:
        for message in other.errors:
            self.error(message)
        self.warnings.extend(other.warnings)
        if other.requires_approval:
            self.require_approval(other.approval_reason)


# =====================================================
# ENTRY POINT
# =====================================================
def validate_state_transition(ctx: ValidationContext) -> ValidationResult:
    result = ValidationResult()

    try:
        current = QuoteStatus(ctx.quote.status)
        target = QuoteStatus(ctx.target_status)
        now = as_utc(ctx.now) or datetime.now(timezone.utc)

        basic = _validate_basic_transition(current, target)
        result.merge(basic)
        if basic.errors:
            return result

        permissions = _validate_user_permissions(ctx.actor, current, target)
        result.merge(permissions)
        if permissions.errors:
            return result

        result.merge(_validate_quote_requirements(ctx.quote, current, target, ctx.actor, ctx.override_flags))
        result.merge(_validate_business_rules(ctx, current, target))
        result.merge(_validate_timing_rules(ctx.quote, current, target, now))

        return result

    except Exception:
        logger.exception(
            "Error during state transition validation",
            extra={"quote_id": ctx.quote.id, "target_status": str(ctx.target_status)},
        )
        return ValidationResult(is_valid=False, errors=[INTERNAL_ERROR_MESSAGE])


# =====================================================
# LAYERS
# =====================================================
def _validate_basic_transition(current: QuoteStatus, target: QuoteStatus) -> ValidationResult:
    result = ValidationResult()

    if not can_transition(current, target):
        result.error(f"Invalid state transition from {current.value} to {target.value}")

    if current == target:
        result.warn("Quote is already in the target status")

    return result


def _validate_user_permissions(
    actor: ActorContext,
    current: QuoteStatus,
    target: QuoteStatus,
) -> ValidationResult:
    result = ValidationResult()

    if target == QuoteStatus.CANCELLED:
        if current == QuoteStatus.SIGNED and not actor.is_approver:
            result.require_approval("Manager approval required to cancel signed quote")

    elif target == QuoteStatus.COMPLETED:
        if actor.role.upper() not in {r.value for r in COMPLETION_ROLES}:
            result.error("Insufficient permissions to mark quote as completed")

    elif target == QuoteStatus.EXPIRED:
        if not actor.is_system and not actor.is_approver:
            result.error("Only managers can manually expire quotes")

    return result


def is_transition_permitted(actor: ActorContext, current, target) -> bool:
    """False when the actor's role can never make this move; approval-gated moves are permitted."""
    return not _validate_user_permissions(actor, QuoteStatus(current), QuoteStatus(target)).errors


def _validate_quote_requirements(
    quote: QuoteSnapshot,
    current: QuoteStatus,
    target: QuoteStatus,
    actor: ActorContext,
    flags: OverrideFlags,
) -> ValidationResult:
    result = ValidationResult()
    requirements = check_state_requirements(quote)

    skip_items = flags.skip_item_validation
    skip_signatures = flags.skip_signature_check
    if (skip_items or skip_signatures) and not actor.is_approver:
        result.warn("Override flags ignored: manager privileges required")
        skip_items = skip_signatures = False

    if target == QuoteStatus.DRAFT:
        if not requirements.has_valid_items and not skip_items:
            result.error("Quote must contain at least one service or product")
        if not requirements.has_customer_info:
            result.warn("Customer information is incomplete")

    elif target == QuoteStatus.PRESENTED:
        if not requirements.has_valid_items:
            result.error("Cannot present quote without services or products")
        if not requirements.has_customer_info:
            result.error("Customer information is required before presenting quote")
        if quote.total <= 0:
            result.error("Quote total must be greater than zero")

    elif target == QuoteStatus.SIGNED:
        if not requirements.has_required_signatures and not skip_signatures:
            result.error("All required signatures must be completed")
        if not requirements.has_payment_info:
            result.error("Payment information is required before marking as signed")
        if quote.presented_at is None:
            result.warn("Quote was not formally presented to customer")

    elif target == QuoteStatus.COMPLETED:
        if not requirements.all_items_fulfilled:
            result.error("All quote items must be fulfilled before completion")
        if current != QuoteStatus.SIGNED:
            result.error("Quote must be signed before marking as completed")

    return result


def _validate_business_rules(
    ctx: ValidationContext,
    current: QuoteStatus,
    target: QuoteStatus,
) -> ValidationResult:
    result = ValidationResult()
    quote, actor = ctx.quote, ctx.actor

    if target == QuoteStatus.SIGNED:
        insurance = quote.insurance_info
        if insurance is not None and insurance.carrier and not insurance.verified:
            result.warn("Insurance information has not been verified")

    if quote.is_patient_owned_frame and target == QuoteStatus.SIGNED:
        if not quote.pof_inspection_completed:
            result.error("Patient-owned frame inspection must be completed before signing")
        if not quote.pof_waiver_signed:
            result.error("Patient-owned frame waiver must be signed")

    if quote.is_second_pair and target in (QuoteStatus.PRESENTED, QuoteStatus.SIGNED):
        if ctx.second_pair_original_status != QuoteStatus.COMPLETED:
            result.error("Original quote must be completed before processing second pair")

    if target == QuoteStatus.SIGNED and Decimal(quote.total) > HIGH_VALUE_QUOTE_THRESHOLD:
        if not actor.is_approver and not actor.is_system:
            result.require_approval(
                f"Manager approval required for high-value quotes over {HIGH_VALUE_QUOTE_THRESHOLD:,.0f}"
            )

    if (
        not actor.is_system
        and not actor.is_approver
        and actor.location_id
        and quote.location_id
        and actor.location_id != quote.location_id
    ):
        result.warn("You are modifying a quote from a different location")

    return result


def _validate_timing_rules(
    quote: QuoteSnapshot,
    current: QuoteStatus,
    target: QuoteStatus,
    now: datetime,
) -> ValidationResult:
    result = ValidationResult()

    created_at = as_utc(quote.created_at)
    if created_at is not None and target == QuoteStatus.PRESENTED:
        age_days = (now - created_at).days
        if age_days > QUOTE_STALE_AFTER_DAYS:
            result.warn(
                f"This quote is over {QUOTE_STALE_AFTER_DAYS} days old. "
                "Consider reviewing pricing and availability."
            )

    if is_expirable_status(current):
        days_left = expiration_policy.get_days_until_expiration(quote, now)
        if days_left is not None and 0 < days_left <= expiration_policy.warning_days:
            result.warn(f"Quote will expire in {days_left} days")

    if target == QuoteStatus.SIGNED and not is_business_hours(now):
        result.warn("Signing quote outside of business hours")

    return result


# =====================================================
# HELPERS
# =====================================================
def is_business_hours(moment: datetime, tz: Union[ZoneInfo, str] = BUSINESS_TZ) -> bool:
    """Mon-Fri 08:00-19:00, Sat 09:00-17:00, closed Sunday."""
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    local = as_utc(moment).astimezone(tz)
    weekday, hour = local.weekday(), local.hour

    if weekday <= 4:
        return 8 <= hour < 19
    if weekday == 5:
        return 9 <= hour < 17
    return False


def get_validation_summary(result: ValidationResult) -> str:
    if not result.is_valid:
        return f"Blocked: {len(result.errors)} errors"
    if result.requires_approval:
        return "Requires manager approval"
    if result.warnings:
        return f"Valid with {len(result.warnings)} warnings"
    return "Valid transition"


def get_recommended_actions(quote: QuoteSnapshot) -> list[str]:
    status = QuoteStatus(quote.status)
    requirements = check_state_requirements(quote)
    actions: list[str] = []

    if status == QuoteStatus.BUILDING:
        if not requirements.has_valid_items:
            actions.append("Add services or products to quote")
        if not requirements.has_customer_info:
            actions.append("Complete customer information")
        if requirements.has_valid_items and requirements.has_customer_info:
            actions.append("Save as draft or present to customer")

    elif status == QuoteStatus.DRAFT:
        actions.append("Present quote to customer")
        if not requirements.has_customer_info:
            actions.append("Complete customer information before presenting")

    elif status == QuoteStatus.PRESENTED:
        actions.append("Collect required signatures")
        for name, completed in required_signatures(quote).items():
            if not completed:
                actions.append(f"Complete {name} signature")
        if quote.is_patient_owned_frame and not (quote.pof_inspection_completed and quote.pof_waiver_signed):
            actions.append("Complete patient-owned frame inspection and waiver")

    elif status == QuoteStatus.SIGNED:
        actions.append("Fulfill quote items")
        if not requirements.all_items_fulfilled:
            actions.append("Process order fulfillment")

    elif status == QuoteStatus.COMPLETED:
        actions.append("Quote is fully completed")

    elif status == QuoteStatus.EXPIRED:
        actions.append("Reactivate quote to continue")

    elif status == QuoteStatus.CANCELLED:
        actions.append("Quote is cancelled - no further action needed")

    return actions
