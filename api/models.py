"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Amounts travel as decimal strings; the domain layer quantizes them to cents.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.credit_application import CreditApplication
from domain.credit_limit import CreditLimit
from domain.credit_transaction import CreditTransaction
from domain.eligibility import EligibilityResult
from domain.risk import CreditStatus
from domain.settings import CreditLimitSettings


# ============================================================================
# Credit Limit Models
# ============================================================================

class CreditLimitResponse(BaseModel):
    """Active credit limit of a client."""
    id: UUID
    client_id: UUID
    limit_amount: Decimal
    used_amount: Decimal
    available_amount: Decimal
    status: str  # "active", "suspended" or "blocked"
    due_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, limit: CreditLimit) -> "CreditLimitResponse":
        return cls(
            id=limit.id,
            client_id=limit.client_id,
            limit_amount=limit.limit_amount,
            used_amount=limit.used_amount,
            available_amount=limit.available_amount,
            status=limit.status.value,
            due_date=limit.due_date,
            approved_by=limit.approved_by,
            notes=limit.notes,
            created_at=limit.created_at,
            updated_at=limit.updated_at,
        )


class CreditStatusResponse(BaseModel):
    status: str
    color: str
    message: str

    @classmethod
    def from_domain(cls, status: CreditStatus) -> "CreditStatusResponse":
        return cls(status=status.status.value, color=status.color, message=status.message)


class CreditSnapshotResponse(BaseModel):
    """Credit overview for a client: limit, status band and utilization."""
    client_id: UUID
    credit_limit: Optional[CreditLimitResponse] = None
    status: CreditStatusResponse
    utilization: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "123e4567-e89b-12d3-a456-426614174002",
                "credit_limit": {
                    "id": "123e4567-e89b-12d3-a456-426614174010",
                    "client_id": "123e4567-e89b-12d3-a456-426614174002",
                    "limit_amount": "1000.00",
                    "used_amount": "850.00",
                    "available_amount": "150.00",
                    "status": "active",
                    "due_date": "2025-02-01T12:00:00Z",
                    "approved_by": "manager@example.com",
                    "notes": None,
                    "created_at": "2025-01-01T12:00:00Z",
                    "updated_at": "2025-01-02T12:00:00Z"
                },
                "status": {"status": "critical", "color": "red", "message": "Critical credit utilization"},
                "utilization": "85.00"
            }
        }


class LimitUpdateRequest(BaseModel):
    """Request to open an account or change its limit."""
    limit_amount: Optional[Decimal] = Field(
        None,
        description="New limit. Omit to use the configured default limit."
    )
    notes: Optional[str] = None
    actor: Optional[str] = Field(None, description="Who performs the change")

    class Config:
        json_schema_extra = {
            "example": {
                "limit_amount": "1500.00",
                "notes": "Annual review",
                "actor": "manager@example.com"
            }
        }


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="'active', 'suspended' or 'blocked'")
    actor: Optional[str] = None


# ============================================================================
# Eligibility Models
# ============================================================================

class EligibilityRequest(BaseModel):
    amount: Decimal


class EligibilityResponse(BaseModel):
    allowed: bool
    available_credit: Decimal
    reason: Optional[str] = None
    shortage: Optional[Decimal] = None

    @classmethod
    def from_domain(cls, result: EligibilityResult) -> "EligibilityResponse":
        return cls(
            allowed=result.allowed,
            available_credit=result.available_credit,
            reason=result.reason,
            shortage=result.shortage,
        )


# ============================================================================
# Transaction Models
# ============================================================================

class TransactionRequest(BaseModel):
    """Request to post a purchase, payment or adjustment."""
    type: str = Field(..., description="'purchase', 'payment' or 'adjustment'")
    amount: Decimal = Field(..., description="Positive; adjustments may be negative")
    description: str = Field(..., min_length=1)
    sale_id: Optional[UUID] = None
    actor: Optional[str] = None
    enforce_limit: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "type": "purchase",
                "amount": "200.00",
                "description": "Order #1042",
                "sale_id": "123e4567-e89b-12d3-a456-426614174003"
            }
        }


class TransactionResponse(BaseModel):
    id: UUID
    credit_limit_id: UUID
    client_id: UUID
    type: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: str
    performed_by: str
    sale_id: Optional[UUID] = None
    reference_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, txn: CreditTransaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            credit_limit_id=txn.credit_limit_id,
            client_id=txn.client_id,
            type=txn.type.value,
            amount=txn.amount,
            balance_before=txn.balance_before,
            balance_after=txn.balance_after,
            description=txn.description,
            performed_by=txn.performed_by,
            sale_id=txn.sale_id,
            reference_id=txn.reference_id,
            created_at=txn.created_at,
        )


class TransactionListResponse(BaseModel):
    items: List[TransactionResponse]
    total_count: int


# ============================================================================
# Application Models
# ============================================================================

class ApplicationRequest(BaseModel):
    requested_limit: Decimal
    reason: str = Field(..., min_length=1)
    actor: Optional[str] = None


class DecisionRequest(BaseModel):
    decision: str = Field(..., description="'approved' or 'rejected'")
    approved_limit: Optional[Decimal] = Field(
        None,
        description="Defaults to the requested limit when approving"
    )
    rejected_reason: Optional[str] = None
    actor: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "decision": "approved",
                "approved_limit": "1500.00",
                "actor": "manager@example.com"
            }
        }


class ApplicationResponse(BaseModel):
    id: UUID
    client_id: UUID
    requested_limit: Decimal
    current_limit_at_request: Decimal
    reason: str
    status: str
    approved_limit: Optional[Decimal] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, app: CreditApplication) -> "ApplicationResponse":
        return cls(
            id=app.id,
            client_id=app.client_id,
            requested_limit=app.requested_limit,
            current_limit_at_request=app.current_limit_at_request,
            reason=app.reason,
            status=app.status.value,
            approved_limit=app.approved_limit,
            approved_by=app.approved_by,
            approved_at=app.approved_at,
            rejected_reason=app.rejected_reason,
            decided_at=app.decided_at,
            created_at=app.created_at,
        )


# ============================================================================
# Settings Models
# ============================================================================

class SettingsResponse(BaseModel):
    default_limit_amount: Decimal
    auto_approve_limit: Decimal
    require_analysis_threshold: Decimal
    block_threshold: Decimal
    interest_rate: Decimal
    late_fee: Decimal
    grace_period_days: int
    max_credit_days: int

    @classmethod
    def from_domain(cls, settings: CreditLimitSettings) -> "SettingsResponse":
        return cls(**settings.to_dict())


class SettingsPatch(BaseModel):
    """Partial settings update; only the fields sent are changed."""
    default_limit_amount: Optional[Decimal] = None
    auto_approve_limit: Optional[Decimal] = None
    require_analysis_threshold: Optional[Decimal] = None
    block_threshold: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    late_fee: Optional[Decimal] = None
    grace_period_days: Optional[int] = None
    max_credit_days: Optional[int] = None


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "InsufficientCredit",
                "detail": "Cannot purchase 600.01 on credit: insufficient available credit (available 600.00)",
                "status_code": 409
            }
        }
