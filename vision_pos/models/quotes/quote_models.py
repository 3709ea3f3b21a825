from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, ForeignKey, Numeric, Enum, JSON, Index,
    CheckConstraint, Boolean, DateTime,
)
from sqlalchemy.orm import relationship

from vision_pos.core.config import QUOTE_AUTO_EXPIRE_DAYS
from vision_pos.core.db import Base
from vision_pos.models.base.mixins import TimestampMixin, SoftDeleteMixin, AuditMixin, VersionMixin
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.approval_status import ApprovalStatus

quote_status_enum = Enum(QuoteStatus, name="quote_status")


class Quote(Base, TimestampMixin, SoftDeleteMixin, AuditMixin, VersionMixin):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True)
    quote_number = Column(String(50), nullable=False, unique=True, index=True)
    location_id = Column(String(64), nullable=True, index=True)

    # ---- lifecycle ----
    status = Column(quote_status_enum, nullable=False, default=QuoteStatus.BUILDING, index=True)
    previous_status = Column(quote_status_enum, nullable=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by = Column(String(64), nullable=True)
    status_reason = Column(String, nullable=True)

    last_activity_at = Column(DateTime(timezone=True), nullable=True, index=True)
    presented_at = Column(DateTime(timezone=True), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    # ---- expiration bookkeeping ----
    auto_expire_after_days = Column(Integer, nullable=False, default=QUOTE_AUTO_EXPIRE_DAYS)
    expire_notification_sent = Column(Boolean, nullable=False, default=False)
    expire_notification_sent_at = Column(DateTime(timezone=True), nullable=True)
    expiration_warning_sent = Column(Boolean, nullable=False, default=False)
    expiration_warning_sent_at = Column(DateTime(timezone=True), nullable=True)

    # ---- content ----
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    exam_services = Column(JSON, nullable=False, default=list)
    eyeglasses = Column(JSON, nullable=True)
    contacts = Column(JSON, nullable=True)
    patient_info = Column(JSON, nullable=True)
    insurance_info = Column(JSON, nullable=True)
    notes = Column(String, nullable=True)

    # ---- set by signature capture / fulfillment ----
    exam_signature_completed = Column(Boolean, nullable=False, default=False)
    materials_signature_completed = Column(Boolean, nullable=False, default=False)
    fulfillment_completed = Column(Boolean, nullable=False, default=False)

    # ---- patient-owned frame ----
    is_patient_owned_frame = Column(Boolean, nullable=False, default=False)
    pof_inspection_completed = Column(Boolean, nullable=False, default=False)
    pof_waiver_signed = Column(Boolean, nullable=False, default=False)

    # ---- second pair ----
    is_second_pair = Column(Boolean, nullable=False, default=False)
    second_pair_of_id = Column(Integer, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True, index=True)

    history = relationship(
        "QuoteStatusHistory",
        back_populates="quote",
        cascade="all, delete-orphan",
        lazy="noload",
        order_by="QuoteStatusHistory.id",
    )

    __table_args__ = (
        Index("ix_quote_status_activity", "status", "last_activity_at"),
        CheckConstraint("total >= 0", name="ck_quote_total_non_negative"),
        CheckConstraint("auto_expire_after_days >= 0", name="ck_quote_expire_days_non_negative"),
    )

    def __repr__(self):
        return f"<Quote {self.quote_number} status={self.status}>"


class QuoteStatusHistory(Base, TimestampMixin):
    """Append-only transition log."""

    __tablename__ = "quote_status_history"

    id = Column(Integer, primary_key=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(quote_status_enum, nullable=False)
    to_status = Column(quote_status_enum, nullable=False)
    reason = Column(String, nullable=False)
    reason_category = Column(String(32), nullable=False)
    changed_by = Column(String(64), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_comment = Column(String, nullable=True)
    approval_request_id = Column(
        Integer, ForeignKey("quote_approval_requests.id", ondelete="SET NULL"), nullable=True
    )

    quote = relationship("Quote", back_populates="history", lazy="noload")

    def __repr__(self):
        return f"<QuoteStatusHistory quote={self.quote_id} {self.from_status}->{self.to_status}>"


class QuoteApprovalRequest(Base, TimestampMixin):
    __tablename__ = "quote_approval_requests"

    id = Column(Integer, primary_key=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(quote_status_enum, nullable=False)
    to_status = Column(quote_status_enum, nullable=False)
    status = Column(
        Enum(ApprovalStatus, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True,
    )
    reason = Column(String, nullable=False)
    user_comment = Column(String, nullable=True)

    requested_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    decided_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String, nullable=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    quote = relationship("Quote", lazy="noload")

    def __repr__(self):
        return f"<QuoteApprovalRequest id={self.id} quote={self.quote_id} status={self.status}>"
