from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.approval_status import ApprovalStatus
from vision_pos.schemas.quotes.quote_schemas import QuoteOut

# =====================================================
# STATUS CHANGE PAYLOADS
# =====================================================

class OverrideFlags(BaseModel):
    skip_signature_check: bool = False
    skip_item_validation: bool = False


class QuoteStatusChangeRequest(BaseModel):
    new_status: QuoteStatus
    reason: Optional[str] = None
    user_comment: Optional[str] = None
    approval_id: Optional[int] = None
    version: Optional[int] = None
    override_flags: OverrideFlags = Field(default_factory=OverrideFlags)


class QuoteStatusPreviewRequest(BaseModel):
    new_status: QuoteStatus
    override_flags: OverrideFlags = Field(default_factory=OverrideFlags)


# =====================================================
# VALIDATION
# =====================================================

class ValidationResultOut(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    requires_approval: bool = False
    approval_reason: Optional[str] = None
    summary: str


class StateRequirementsOut(BaseModel):
    has_required_signatures: bool
    has_valid_items: bool
    has_customer_info: bool
    has_payment_info: bool
    all_items_fulfilled: bool


# =====================================================
# STATUS READ MODEL
# =====================================================

class StateInfo(BaseModel):
    label: str
    description: str
    color: str
    icon: str
    is_terminal: bool
    can_edit: bool
    requires_customer_action: bool


class CompletionFlags(BaseModel):
    exam_signature: bool
    materials_signature: bool
    fulfillment: bool
    pof_inspection: bool
    pof_waiver: bool


class ExpirationInfo(BaseModel):
    is_expirable: bool
    expires_at: Optional[datetime]
    days_until_expiration: Optional[int]
    warning_sent: bool
    expiration_notice_sent: bool


class QuoteStatusOut(BaseModel):
    quote_id: int
    quote_number: str
    status: QuoteStatus
    previous_status: Optional[QuoteStatus]
    status_changed_at: Optional[datetime]
    status_changed_by: Optional[str]
    status_reason: Optional[str]
    last_activity_at: Optional[datetime]
    version: int

    completion_flags: CompletionFlags
    state_info: StateInfo
    next_valid_states: List[QuoteStatus]
    requirements: StateRequirementsOut
    recommended_actions: List[str]
    expiration: ExpirationInfo


class QuoteStatusChangeOut(BaseModel):
    quote: QuoteOut
    changed: bool
    requires_approval: bool = False
    approval_id: Optional[int] = None
    validation: Optional[ValidationResultOut] = None


# =====================================================
# APPROVALS
# =====================================================

class ApprovalRequestOut(BaseModel):
    id: int
    quote_id: int
    from_status: QuoteStatus
    to_status: QuoteStatus
    status: ApprovalStatus
    reason: str
    user_comment: Optional[str]
    requested_by_id: Optional[int]
    decided_by_id: Optional[int]
    decided_at: Optional[datetime]
    rejection_reason: Optional[str]
    consumed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalListData(BaseModel):
    total: int
    items: List[ApprovalRequestOut]


class ApprovalRejectRequest(BaseModel):
    rejection_reason: str = Field(min_length=1)


# =====================================================
# HISTORY
# =====================================================

class StatusHistoryOut(BaseModel):
    id: int
    from_status: QuoteStatus
    to_status: QuoteStatus
    reason: str
    reason_category: str
    changed_by: str
    user_comment: Optional[str]
    approval_request_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


# =====================================================
# EXPIRATION SWEEP
# =====================================================

class ExpirationRunRequest(BaseModel):
    dry_run: bool = False
    batch_size: Optional[int] = Field(default=None, ge=1, le=1000)
    max_quotes_to_process: Optional[int] = Field(default=None, ge=1, le=10000)
    send_notifications: Optional[bool] = None


class ExpirationJobResultOut(BaseModel):
    quotes_checked: int
    quotes_expired: int
    warnings_sent: int
    errors: List[str]
    execution_time_ms: int
    dry_run: bool
