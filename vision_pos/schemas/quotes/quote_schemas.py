from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from vision_pos.models.enums.quote_status import QuoteStatus

# =====================================================
# STRUCTURED CONTENT
# =====================================================

class LineItemGroup(BaseModel):
    items: List[dict] = Field(default_factory=list)

    class Config:
        extra = "allow"


class PatientInfo(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        extra = "allow"


class InsuranceInfo(BaseModel):
    carrier: Optional[str] = None
    member_id: Optional[str] = None
    verified: bool = False

    class Config:
        extra = "allow"


# =====================================================
# SNAPSHOT (read model used by the lifecycle rules)
# =====================================================

class QuoteSnapshot(BaseModel):
    id: Optional[int] = None
    quote_number: Optional[str] = None
    location_id: Optional[str] = None

    status: QuoteStatus = QuoteStatus.BUILDING
    previous_status: Optional[QuoteStatus] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    presented_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    auto_expire_after_days: Optional[int] = None
    expire_notification_sent: bool = False
    expiration_warning_sent: bool = False

    total: Decimal = Decimal("0.00")

    exam_services: List[dict] = Field(default_factory=list)
    eyeglasses: Optional[LineItemGroup] = None
    contacts: Optional[LineItemGroup] = None
    patient_info: Optional[PatientInfo] = None
    insurance_info: Optional[InsuranceInfo] = None

    exam_signature_completed: bool = False
    materials_signature_completed: bool = False
    fulfillment_completed: bool = False

    is_patient_owned_frame: bool = False
    pof_inspection_completed: bool = False
    pof_waiver_signed: bool = False

    is_second_pair: bool = False
    second_pair_of_id: Optional[int] = None

    version: Optional[int] = None

    class Config:
        from_attributes = True


# =====================================================
# QUOTE CREATE / UPDATE
# =====================================================

class QuoteCreate(BaseModel):
    location_id: Optional[str] = None
    patient_info: Optional[PatientInfo] = None
    insurance_info: Optional[InsuranceInfo] = None
    exam_services: List[dict] = Field(default_factory=list)
    eyeglasses: Optional[LineItemGroup] = None
    contacts: Optional[LineItemGroup] = None
    total: Decimal = Field(default=Decimal("0.00"), ge=0)
    auto_expire_after_days: Optional[int] = Field(default=None, ge=1)
    is_patient_owned_frame: bool = False
    is_second_pair: bool = False
    second_pair_of_id: Optional[int] = None
    notes: Optional[str] = None


class QuoteUpdate(BaseModel):
    patient_info: Optional[PatientInfo] = None
    insurance_info: Optional[InsuranceInfo] = None
    exam_services: Optional[List[dict]] = None
    eyeglasses: Optional[LineItemGroup] = None
    contacts: Optional[LineItemGroup] = None
    total: Optional[Decimal] = Field(default=None, ge=0)
    auto_expire_after_days: Optional[int] = Field(default=None, ge=1)
    is_patient_owned_frame: Optional[bool] = None
    notes: Optional[str] = None
    version: int


class QuoteProgressUpdate(BaseModel):
    exam_signature_completed: Optional[bool] = None
    materials_signature_completed: Optional[bool] = None
    fulfillment_completed: Optional[bool] = None
    pof_inspection_completed: Optional[bool] = None
    pof_waiver_signed: Optional[bool] = None
    insurance_verified: Optional[bool] = None
    version: int


# =====================================================
# QUOTE RESPONSES
# =====================================================

class QuoteOut(QuoteSnapshot):
    id: int
    quote_number: str

    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    status_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    version: int

    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_by_name: Optional[str] = None
    updated_by_name: Optional[str] = None


class QuoteListItem(BaseModel):
    id: int
    quote_number: str
    location_id: Optional[str]
    customer_name: Optional[str]
    status: QuoteStatus
    total: Decimal
    last_activity_at: Optional[datetime]
    created_at: datetime
    version: int


class QuoteListData(BaseModel):
    total: int
    items: List[QuoteListItem]
