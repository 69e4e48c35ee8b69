"""SQLAlchemy ORM models for the DirigIA API.

Profiles own resources, OCR audit rows, payments and capture
preferences.  Enumerated fields are stored by *value* (``free``,
``PAID``...) so rows read the same from SQL as from the API.
``payments.billing_id`` is unique: webhook reconciliation relies on it
for idempotent upserts.

During development call the ``init_db`` helper to create the tables.
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Boolean,
    Enum,
    ForeignKey,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from dirigia.core.database import Base
from .enums import PlanType, PaymentStatus, CaptureMode


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _enum(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Profile(Base):
    """Account record keyed by the auth provider's user id."""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    plan = Column(_enum(PlanType, "plan_type"), nullable=False, default=PlanType.FREE)
    resources_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    resources = relationship("Resource", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    payments = relationship("Payment", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


class Resource(Base):
    """Generated appeal. Immutable once written; only its owner may delete it."""

    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    ait_number = Column(String, nullable=True)
    placa = Column(String, nullable=True)
    renavam = Column(String, nullable=True)
    artigo = Column(String, nullable=True)
    local = Column(String, nullable=True)
    orgao_autuador = Column(String, nullable=True)
    data_infracao = Column(Date, nullable=True)
    generated_text = Column(Text, nullable=False)
    pdf_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    owner = relationship("Profile", back_populates="resources")


class OcrRaw(Base):
    """Append-only audit of accepted extraction results."""

    __tablename__ = "ocr_raw"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_file_url = Column(String, nullable=True)
    extracted_text = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Payment(Base):
    """Payment attempt keyed by the provider's billing id."""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    billing_id = Column(String, nullable=False, unique=True)
    plan = Column(String, nullable=False, default=PlanType.PREMIUM.value)
    amount = Column(Integer, nullable=False, default=0)  # cents
    status = Column(_enum(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.PENDING)
    payment_method = Column(String, nullable=True)
    br_code = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    owner = relationship("Profile", back_populates="payments")


class CapturePreference(Base):
    """Remembered camera/file permission grant, with expiry."""

    __tablename__ = "capture_preferences"
    __table_args__ = (UniqueConstraint("user_id", "mode", name="uq_capture_preferences_user_mode"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    mode = Column(_enum(CaptureMode, "capture_mode"), nullable=False)
    granted = Column(Boolean, nullable=False, default=False)
    granted_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
