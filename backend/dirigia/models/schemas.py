"""Pydantic schemas for request and response models.

Pydantic models validate and serialise data crossing the API boundary.
The client and the extraction model both speak camelCase
(``aitNumber``, ``isTrafficFine``); fields are declared in snake_case
and exposed through camelCase aliases.

Schemas are intentionally separate from the SQLAlchemy models so the
API shape can differ from what is stored.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import (
    BillingPlan,
    CaptureMode,
    PaymentEventKind,
    PaymentMethod,
    PaymentProvider,
    PaymentStatus,
    PlanType,
)
from dirigia.utils.sanitization import sanitize_string, digits_only


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Extraction


FINE_FIELDS: tuple[str, ...] = (
    "ait_number",
    "data_infracao",
    "local",
    "placa",
    "renavam",
    "artigo",
    "orgao_autuador",
    "nome_condutor",
    "cpf_condutor",
    "endereco_condutor",
)


class FineData(CamelModel):
    """Fields read from a traffic-fine notice. Every field is optional."""

    ait_number: Optional[str] = None
    data_infracao: Optional[str] = None
    local: Optional[str] = None
    placa: Optional[str] = None
    renavam: Optional[str] = None
    artigo: Optional[str] = None
    orgao_autuador: Optional[str] = None
    nome_condutor: Optional[str] = None
    cpf_condutor: Optional[str] = None
    endereco_condutor: Optional[str] = None

    @field_validator(*FINE_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        # Models sometimes answer numbers (RENAVAM) or empty strings
        if v is None or isinstance(v, (dict, list)):
            return None
        if isinstance(v, bool):
            return None
        text = str(v).strip()
        return text or None

    def missing_fields(self) -> List[str]:
        return [to_camel(name) for name in FINE_FIELDS if getattr(self, name) is None]


class FineExtraction(FineData):
    """Model output: the fine fields plus the is-traffic-fine gate."""

    is_traffic_fine: bool = False

    @field_validator("is_traffic_fine", mode="before")
    @classmethod
    def _coerce_flag(cls, v: Any) -> bool:
        # Only an explicit true passes the gate
        if isinstance(v, str):
            return v.strip().lower() in {"true", "sim", "yes"}
        return v is True

    def fine_data(self) -> FineData:
        return FineData.model_validate(self.model_dump(include=set(FINE_FIELDS)))


class OcrResponse(CamelModel):
    success: bool = True
    extracted_data: Dict[str, Any]
    review_data: FineData
    missing_fields: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Generation


class GenerateRequest(CamelModel):
    ocr_data: FineData = Field(default_factory=FineData)
    user_explanation: str = Field(min_length=1, max_length=5000)
    selected_arguments: List[str] = Field(default_factory=list, max_length=20)

    @field_validator("user_explanation", mode="before")
    @classmethod
    def _strip_explanation(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("selected_arguments", mode="before")
    @classmethod
    def _clean_arguments(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [str(a).strip() for a in v if str(a).strip()]
        return v


class GenerateResponse(CamelModel):
    generated_text: str
    resource_id: str


class ResourceSummary(CamelModel):
    id: str
    ait_number: Optional[str] = None
    placa: Optional[str] = None
    artigo: Optional[str] = None
    orgao_autuador: Optional[str] = None
    data_infracao: Optional[dt.date] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class ResourceRead(ResourceSummary):
    renavam: Optional[str] = None
    local: Optional[str] = None
    pdf_url: Optional[str] = None
    generated_text: str
    is_premium: bool = False
    truncated: bool = False
    hidden_chars: int = 0


# ---------------------------------------------------------------------------
# Profile and capture preferences


class ProfileRead(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    plan: PlanType
    resources_count: int = 0
    is_premium: bool = False
    created_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class ProfileUpdate(CamelModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return sanitize_string(v)
        return v


class CapturePermission(CamelModel):
    mode: CaptureMode
    granted: bool = False
    granted_at: Optional[dt.datetime] = None
    expires_at: Optional[dt.datetime] = None
    should_prompt: bool = True


class CapturePreferences(CamelModel):
    camera: CapturePermission
    file: CapturePermission


class CapturePermissionUpdate(CamelModel):
    granted: bool


# ---------------------------------------------------------------------------
# Checkout and payments


class CustomerData(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str
    cpf: str

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return sanitize_string(v)
        return v

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, v: str) -> str:
        digits = digits_only(v)
        if len(digits) < 10 or len(digits) > 13:
            raise ValueError("Telefone inválido")
        return digits

    @field_validator("cpf")
    @classmethod
    def _cpf_digits(cls, v: str) -> str:
        digits = digits_only(v)
        if len(digits) != 11:
            raise ValueError("CPF deve conter 11 dígitos")
        return digits


class CheckoutRequest(CamelModel):
    plan: BillingPlan = BillingPlan.MONTHLY
    payment_method: PaymentMethod = PaymentMethod.PIX
    customer_data: Optional[CustomerData] = None

    @field_validator("payment_method")
    @classmethod
    def _checkout_methods(cls, v: PaymentMethod) -> PaymentMethod:
        if v == PaymentMethod.CAKTO:
            raise ValueError("Método de pagamento não suportado")
        return v


class CheckoutResponse(CamelModel):
    success: bool = True
    billing_url: str
    billing_id: str


class SimulatePaymentRequest(CamelModel):
    pix_qr_code_id: str = Field(min_length=1)


class PaymentRead(CamelModel):
    billing_id: str
    plan: str
    amount: int
    status: PaymentStatus
    payment_method: Optional[str] = None
    br_code: Optional[str] = None
    paid_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class CanonicalPaymentEvent(BaseModel):
    """Provider-independent view of a payment webhook."""

    provider: PaymentProvider
    kind: PaymentEventKind
    raw_event: str
    billing_id: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None
    amount_cents: Optional[int] = None
    payment_method: Optional[str] = None
    br_code: Optional[str] = None
    # Stable digest of the delivery body; identical re-deliveries share it
    fingerprint: Optional[str] = None


class WebhookAck(BaseModel):
    success: bool = True
    message: str
