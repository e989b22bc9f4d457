from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal

Money = condecimal(ge=0, max_digits=15, decimal_places=2)


# ─────────── REQUESTS ───────────


class DeployedContractCreate(BaseModel):
    """
    Required identity fields are Optional here so a missing one surfaces as a
    field-specific ValidationError from the lifecycle service.
    """

    model_config = ConfigDict(extra="forbid")

    job_posting_id: Optional[uuid.UUID] = None
    employee_id: Optional[uuid.UUID] = None
    employer_id: Optional[uuid.UUID] = None
    contract_address: Optional[str] = Field(default=None, max_length=42)
    payment_amount: Optional[Money] = None

    payment_currency: Optional[str] = Field(default=None, max_length=10)
    payment_frequency: Optional[str] = Field(default=None, max_length=50)
    deployment_tx_hash: Optional[str] = Field(default=None, max_length=66)
    deployed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    expected_end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    selected_oracles: Optional[str] = None
    oracle_addresses: Optional[str] = None
    contract_version: Optional[int] = Field(default=None, ge=1)

    status: Optional[str] = None
    verification_status: Optional[str] = None


class ContractUpdateFields(BaseModel):
    """Value validation for PUT /deployed-contracts/{id} once keys are authorized."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    verification_status: Optional[str] = None
    total_paid: Optional[Money] = None
    last_payment_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    started_at: Optional[datetime] = None
    expected_end_date: Optional[date] = None
    actual_end_date: Optional[date] = None


class StatusChangeRequest(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=2000)


class StatusCorrectionRequest(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=2000)


class MediatorAssignRequest(BaseModel):
    mediator_id: Optional[uuid.UUID] = None


class PaymentCompletionRequest(BaseModel):
    tx_hash: Optional[str] = Field(default=None, max_length=66)
    amount: Optional[Money] = None
    currency: Optional[str] = Field(default=None, max_length=10)
    from_address: Optional[str] = Field(default=None, max_length=42)
    to_address: Optional[str] = Field(default=None, max_length=42)
    block_number: Optional[int] = Field(default=None, ge=0)


# ─────────── RESPONSES ───────────


class PartyRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    wallet_address: Optional[str] = None


class JobPostingRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    status: str
    positions_available: int


class DeployedContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contract_address: str
    job_posting_id: uuid.UUID
    employee_id: uuid.UUID
    employer_id: uuid.UUID

    status: str
    verification_status: str

    payment_amount: Decimal
    payment_currency: str
    payment_frequency: Optional[str] = None
    total_paid: Decimal
    last_payment_date: Optional[date] = None
    next_payment_date: Optional[date] = None

    deployment_tx_hash: Optional[str] = None
    deployed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    expected_end_date: Optional[date] = None
    actual_end_date: Optional[date] = None

    mediator_id: Optional[uuid.UUID] = None
    contract_snapshot: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeployedContractDetail(DeployedContractResponse):
    job_posting: Optional[JobPostingRef] = None
    employee: Optional[PartyRef] = None


class ContractListResponse(BaseModel):
    data: List[DeployedContractDetail]
    count: int


class PaymentTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deployed_contract_id: uuid.UUID
    amount: Decimal
    currency: str
    payment_type: Optional[str] = None
    tx_hash: str
    block_number: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    status: str
    processed_at: Optional[datetime] = None


class PaymentListResponse(BaseModel):
    data: List[PaymentTransactionResponse]
    count: int


class CompletionResponse(BaseModel):
    contract: DeployedContractResponse
    payment: PaymentTransactionResponse
    already_recorded: bool


class DisputeHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deployed_contract_id: uuid.UUID
    raised_by_role: str
    raised_by_employee_id: Optional[uuid.UUID] = None
    raised_by_employer_id: Optional[uuid.UUID] = None
    raised_at: Optional[datetime] = None
    reason: str
    mediator_id: Optional[uuid.UUID] = None
    mediator_assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolution_tx_hash: Optional[str] = None


class DisputeListResponse(BaseModel):
    data: List[DisputeHistoryResponse]
    count: int
