# lucid_ledger/api/v1/deployed_contracts.py
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from lucid_ledger.core.auth_deps import get_current_principal
from lucid_ledger.core.deps import get_lifecycle_service
from lucid_ledger.core.errors import ValidationError
from lucid_ledger.db.session import get_db
from lucid_ledger.models.deployed_contract import DeployedContract
from lucid_ledger.policies.rbac import Principal
from lucid_ledger.schemas.deployed_contracts import (
    CompletionResponse,
    ContractListResponse,
    DeployedContractCreate,
    DeployedContractDetail,
    DeployedContractResponse,
    DisputeHistoryResponse,
    DisputeListResponse,
    MediatorAssignRequest,
    PaymentCompletionRequest,
    PaymentListResponse,
    PaymentTransactionResponse,
    StatusChangeRequest,
    StatusCorrectionRequest,
)
from lucid_ledger.services.lifecycle_service import ContractLifecycleService

router = APIRouter(prefix="/deployed-contracts")


def _uuid(raw: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be UUID.", field=name)


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _to_resp(c: DeployedContract) -> DeployedContractDetail:
    return DeployedContractDetail.model_validate(c)


def _list_resp(rows) -> dict:
    return {"data": [_to_resp(c) for c in rows], "count": len(rows)}


# ─────────── COLLECTION ───────────


@router.post("", response_model=DeployedContractDetail, status_code=201)
async def create_deployed_contract(
    body: DeployedContractCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.create_deployed_contract(db, payload=body, principal=principal, request_id=_rid(request))
    return _to_resp(row)


@router.get("", response_model=ContractListResponse)
async def list_for_employer(
    employer_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    eid = _uuid(employer_id, "employer_id") if employer_id else None
    rows = svc.list_for_employer(db, employer_id=eid, principal=principal, status=status)
    return _list_resp(rows)


# Static paths must be declared before /{contractId}.


@router.get("/disputed", response_model=ContractListResponse)
async def list_disputed(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    return _list_resp(svc.list_disputed(db, principal=principal))


@router.get("/employee/{employeeId}", response_model=ContractListResponse)
async def list_for_employee(
    employeeId: str,
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    rows = svc.list_for_employee(
        db, employee_id=_uuid(employeeId, "employeeId"), principal=principal, status=status
    )
    return _list_resp(rows)


@router.get("/mediator/{mediatorId}/disputed", response_model=ContractListResponse)
async def list_for_mediator(
    mediatorId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    rows = svc.list_for_mediator(db, mediator_id=_uuid(mediatorId, "mediatorId"), principal=principal)
    return _list_resp(rows)


# ─────────── SINGLE CONTRACT ───────────


@router.get("/{contractId}", response_model=DeployedContractDetail)
async def get_deployed_contract(
    contractId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.get_contract(db, contract_id=_uuid(contractId, "contractId"), principal=principal)
    return _to_resp(row)


@router.patch("/{contractId}/status", response_model=DeployedContractDetail)
async def change_status(
    contractId: str,
    body: StatusChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.request_status_change(
        db,
        contract_id=_uuid(contractId, "contractId"),
        target_status=body.status,
        principal=principal,
        reason=body.reason,
        request_id=_rid(request),
    )
    return _to_resp(row)


@router.put("/{contractId}", response_model=DeployedContractDetail)
async def update_deployed_contract(
    contractId: str,
    request: Request,
    fields: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.update_deployed_contract(
        db,
        contract_id=_uuid(contractId, "contractId"),
        fields=fields,
        principal=principal,
        request_id=_rid(request),
    )
    return _to_resp(row)


@router.patch("/{contractId}/mediator", response_model=DeployedContractDetail)
async def assign_mediator(
    contractId: str,
    body: MediatorAssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.assign_mediator(
        db,
        contract_id=_uuid(contractId, "contractId"),
        mediator_id=body.mediator_id,
        principal=principal,
        request_id=_rid(request),
    )
    return _to_resp(row)


@router.post("/{contractId}/complete", response_model=CompletionResponse)
async def complete_with_payment(
    contractId: str,
    body: PaymentCompletionRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    result = svc.complete_contract_with_payment(
        db,
        contract_id=_uuid(contractId, "contractId"),
        tx_hash=body.tx_hash,
        amount=body.amount,
        currency=body.currency,
        from_address=body.from_address,
        to_address=body.to_address,
        block_number=body.block_number,
        principal=principal,
        request_id=_rid(request),
    )
    return {
        "contract": DeployedContractResponse.model_validate(result.contract),
        "payment": PaymentTransactionResponse.model_validate(result.payment),
        "already_recorded": result.already_recorded,
    }


@router.post("/{contractId}/corrections", response_model=DeployedContractDetail)
async def correct_status(
    contractId: str,
    body: StatusCorrectionRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    row = svc.correct_contract_status(
        db,
        contract_id=_uuid(contractId, "contractId"),
        target_status=body.status,
        reason=body.reason,
        principal=principal,
        request_id=_rid(request),
    )
    return _to_resp(row)


@router.get("/{contractId}/payments", response_model=PaymentListResponse)
async def list_payments(
    contractId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    rows = svc.list_payments(db, contract_id=_uuid(contractId, "contractId"), principal=principal)
    return {"data": [PaymentTransactionResponse.model_validate(p) for p in rows], "count": len(rows)}


@router.get("/{contractId}/disputes", response_model=DisputeListResponse)
async def list_disputes(
    contractId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ContractLifecycleService = Depends(get_lifecycle_service),
):
    rows = svc.list_disputes(db, contract_id=_uuid(contractId, "contractId"), principal=principal)
    return {"data": [DisputeHistoryResponse.model_validate(d) for d in rows], "count": len(rows)}
