import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import (
    ADMIN_WALLET,
    EMPLOYEE_WALLET,
    EMPLOYER_WALLET,
    MEDIATOR_WALLET,
    STRANGER_WALLET,
    as_,
    make_contract,
    make_employee,
    make_employer,
    make_job,
    make_mediator,
    new_address,
)

from lucid_ledger.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lucid_ledger.core.statuses import ContractStatus
from lucid_ledger.models.audit_log import AuditLog
from lucid_ledger.models.deployed_contract import DeployedContract
from lucid_ledger.models.dispute_history import DisputeHistory
from lucid_ledger.models.job_application import JobApplication
from lucid_ledger.models.job_posting import JobPosting
from lucid_ledger.models.payment_transaction import PaymentTransaction
from lucid_ledger.policies.rbac import ROLE_TARGETS, ContractRole
from lucid_ledger.schemas.deployed_contracts import DeployedContractCreate


def _contract(db, parties, status="active", mediator=None):
    return make_contract(
        db, parties["job"], parties["employer"], parties["employee"], status=status, mediator=mediator
    )


def _reload(db, contract):
    db.expire_all()
    return db.get(DeployedContract, contract.id)


def _count(db, model, *criteria):
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


def _create_payload(parties, **overrides):
    data = dict(
        job_posting_id=parties["job"].id,
        employee_id=parties["employee"].id,
        employer_id=parties["employer"].id,
        contract_address=new_address(),
        payment_amount=Decimal("500.00"),
    )
    data.update(overrides)
    return DeployedContractCreate(**data)


# ---------------------------
# CREATE
# ---------------------------


def test_employer_creates_contract_with_snapshot(db, svc, parties):
    address = "0x" + "AbCd" * 10
    c = svc.create_deployed_contract(
        db, payload=_create_payload(parties, contract_address=address), principal=as_(EMPLOYER_WALLET)
    )

    assert c.contract_address == address.lower()
    assert c.status == "active"
    assert c.verification_status == "pending"
    assert c.contract_snapshot == {"rate": "500.00", "terms": "v1"}
    assert _count(db, AuditLog, AuditLog.action == "CONTRACT_CREATED") == 1


def test_snapshot_is_a_copy_not_a_reference(db, svc, parties):
    c = svc.create_deployed_contract(db, payload=_create_payload(parties), principal=as_(EMPLOYER_WALLET))

    application = parties["application"]
    application.contract_snapshot = {"rate": "999.00"}
    db.commit()

    assert _reload(db, c).contract_snapshot == {"rate": "500.00", "terms": "v1"}


def test_create_without_application_has_no_snapshot(db, svc, parties):
    other = make_employee(db, wallet="0x" + "4" * 40)
    c = svc.create_deployed_contract(
        db, payload=_create_payload(parties, employee_id=other.id), principal=as_(EMPLOYER_WALLET)
    )
    assert c.contract_snapshot is None


@pytest.mark.parametrize(
    "missing",
    ["job_posting_id", "employee_id", "employer_id", "contract_address", "payment_amount"],
)
def test_create_requires_identity_fields(db, svc, parties, missing):
    with pytest.raises(ValidationError) as e:
        svc.create_deployed_contract(
            db, payload=_create_payload(parties, **{missing: None}), principal=as_(EMPLOYER_WALLET)
        )
    assert e.value.field == missing


def test_create_rejects_other_employer_and_missing_wallet(db, svc, parties):
    with pytest.raises(AuthorizationError):
        svc.create_deployed_contract(db, payload=_create_payload(parties), principal=as_(EMPLOYEE_WALLET))
    with pytest.raises(AuthorizationError):
        svc.create_deployed_contract(db, payload=_create_payload(parties), principal=as_(None))
    assert _count(db, DeployedContract) == 0


def test_non_admin_cannot_create_with_non_default_status(db, svc, parties):
    with pytest.raises(AuthorizationError):
        svc.create_deployed_contract(
            db, payload=_create_payload(parties, status="completed"), principal=as_(EMPLOYER_WALLET)
        )
    with pytest.raises(AuthorizationError):
        svc.create_deployed_contract(
            db,
            payload=_create_payload(parties, verification_status="verified"),
            principal=as_(EMPLOYER_WALLET),
        )


def test_admin_may_create_with_explicit_status(db, svc, parties):
    c = svc.create_deployed_contract(
        db,
        payload=_create_payload(parties, verification_status="verified"),
        principal=as_(ADMIN_WALLET),
    )
    assert c.verification_status == "verified"


def test_create_rejects_duplicate_address(db, svc, parties):
    address = new_address()
    svc.create_deployed_contract(
        db, payload=_create_payload(parties, contract_address=address), principal=as_(EMPLOYER_WALLET)
    )
    with pytest.raises(ConflictError):
        svc.create_deployed_contract(
            db,
            payload=_create_payload(parties, contract_address=address.upper().replace("0X", "0x")),
            principal=as_(EMPLOYER_WALLET),
        )


def test_create_rejects_job_of_another_employer(db, svc, parties):
    other_employer = make_employer(db, wallet="0x" + "5" * 40)
    other_job = make_job(db, other_employer)
    with pytest.raises(ValidationError):
        svc.create_deployed_contract(
            db, payload=_create_payload(parties, job_posting_id=other_job.id), principal=as_(EMPLOYER_WALLET)
        )


def test_create_unknown_employee_is_not_found(db, svc, parties):
    with pytest.raises(NotFoundError):
        svc.create_deployed_contract(
            db, payload=_create_payload(parties, employee_id=uuid.uuid4()), principal=as_(EMPLOYER_WALLET)
        )


def test_create_rejects_malformed_address(db, svc, parties):
    with pytest.raises(ValidationError):
        svc.create_deployed_contract(
            db, payload=_create_payload(parties, contract_address="0x1234"), principal=as_(EMPLOYER_WALLET)
        )


# ---------------------------
# ROLE GATING
# ---------------------------

_CASES = []
for _role, _wallet, _current in [
    (ContractRole.employer, EMPLOYER_WALLET, "active"),
    (ContractRole.employee, EMPLOYEE_WALLET, "active"),
    (ContractRole.mediator, MEDIATOR_WALLET, "disputed"),
]:
    for _target in ContractStatus:
        _CASES.append((_role, _wallet, _current, _target, _target in ROLE_TARGETS[_role]))


@pytest.mark.parametrize("role,wallet,current,target,allowed", _CASES)
def test_role_gating(db, svc, parties, role, wallet, current, target, allowed):
    mediator = make_mediator(db)
    c = _contract(db, parties, status=current, mediator=mediator)

    if allowed:
        out = svc.request_status_change(
            db, contract_id=c.id, target_status=target.value, principal=as_(wallet)
        )
        assert out.status == target.value
    else:
        with pytest.raises(AuthorizationError):
            svc.request_status_change(
                db, contract_id=c.id, target_status=target.value, principal=as_(wallet)
            )
        assert _reload(db, c).status == current


@pytest.mark.parametrize("target", [s.value for s in ContractStatus if s != ContractStatus.active])
def test_admin_may_request_any_target(db, svc, parties, target):
    c = _contract(db, parties)
    out = svc.request_status_change(db, contract_id=c.id, target_status=target, principal=as_(ADMIN_WALLET))
    assert out.status == target


def test_stranger_and_missing_wallet_are_rejected(db, svc, parties):
    c = _contract(db, parties)
    for wallet in (STRANGER_WALLET, None):
        with pytest.raises(AuthorizationError):
            svc.request_status_change(db, contract_id=c.id, target_status="disputed", principal=as_(wallet))


def test_wallet_match_is_case_insensitive(db, svc, parties):
    # stored checksummed, presented lowercase
    parties["employee"].wallet_address = "0x" + "Be" * 20
    db.commit()
    c = _contract(db, parties)
    out = svc.request_status_change(
        db, contract_id=c.id, target_status="disputed", principal=as_("0x" + "be" * 20)
    )
    assert out.status == "disputed"


@pytest.mark.parametrize("target", ["completed", "terminated"])
def test_mediator_only_while_disputed(db, svc, parties, target):
    mediator = make_mediator(db)
    c = _contract(db, parties, status="active", mediator=mediator)
    with pytest.raises(AuthorizationError):
        svc.request_status_change(db, contract_id=c.id, target_status=target, principal=as_(MEDIATOR_WALLET))


def test_unknown_status_is_validation_error(db, svc, parties):
    c = _contract(db, parties)
    with pytest.raises(ValidationError):
        svc.request_status_change(db, contract_id=c.id, target_status="funded", principal=as_(ADMIN_WALLET))


def test_unknown_contract_is_not_found(db, svc):
    with pytest.raises(NotFoundError):
        svc.request_status_change(
            db, contract_id=uuid.uuid4(), target_status="disputed", principal=as_(ADMIN_WALLET)
        )


def test_terminal_change_reconciles_job(db, svc, parties):
    c = _contract(db, parties)
    svc.request_status_change(db, contract_id=c.id, target_status="completed", principal=as_(EMPLOYER_WALLET))
    assert db.get(JobPosting, parties["job"].id).status == "completed"


def test_non_terminal_change_does_not_touch_job(db, svc, parties):
    c = _contract(db, parties)
    svc.request_status_change(db, contract_id=c.id, target_status="disputed", principal=as_(EMPLOYEE_WALLET))
    assert db.get(JobPosting, parties["job"].id).status == "active"


def test_reconciler_failure_does_not_undo_status_change(db, svc, parties, bus):
    def boom(db, event):
        raise RuntimeError("reconciler down")

    bus.subscribe(boom)
    c = _contract(db, parties)
    svc.request_status_change(db, contract_id=c.id, target_status="completed", principal=as_(EMPLOYER_WALLET))
    assert _reload(db, c).status == "completed"


# ---------------------------
# TERMINAL IMMUTABILITY / CORRECTIONS
# ---------------------------


@pytest.mark.parametrize("terminal", ["completed", "refunded", "terminated"])
@pytest.mark.parametrize("wallet", [EMPLOYER_WALLET, EMPLOYEE_WALLET])
def test_non_admin_cannot_leave_terminal(db, svc, parties, terminal, wallet):
    c = _contract(db, parties, status=terminal)
    with pytest.raises(AuthorizationError):
        svc.request_status_change(db, contract_id=c.id, target_status="disputed", principal=as_(wallet))
    with pytest.raises(AuthorizationError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"status": "disputed"}, principal=as_(wallet)
        )
    assert _reload(db, c).status == terminal


def test_admin_leaving_terminal_requires_reason_and_is_audited(db, svc, parties):
    c = _contract(db, parties, status="completed")

    with pytest.raises(ValidationError):
        svc.request_status_change(db, contract_id=c.id, target_status="active", principal=as_(ADMIN_WALLET))

    out = svc.request_status_change(
        db,
        contract_id=c.id,
        target_status="active",
        principal=as_(ADMIN_WALLET),
        reason="completed by mistake",
    )
    assert out.status == "active"
    row = db.execute(select(AuditLog).where(AuditLog.action == "CONTRACT_STATUS_CORRECTED")).scalar_one()
    assert row.details_json["from"] == "completed"
    assert row.details_json["to"] == "active"
    assert row.actor_wallet == ADMIN_WALLET


def test_general_update_cannot_leave_terminal_even_for_admin(db, svc, parties):
    c = _contract(db, parties, status="refunded")
    with pytest.raises(ConflictError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"status": "active"}, principal=as_(ADMIN_WALLET)
        )


def test_correction_is_admin_only(db, svc, parties):
    c = _contract(db, parties, status="completed")
    with pytest.raises(AuthorizationError):
        svc.correct_contract_status(
            db, contract_id=c.id, target_status="active", reason="x", principal=as_(EMPLOYER_WALLET)
        )


def test_correction_to_same_status_conflicts(db, svc, parties):
    c = _contract(db, parties, status="completed")
    with pytest.raises(ConflictError):
        svc.correct_contract_status(
            db, contract_id=c.id, target_status="completed", reason="x", principal=as_(ADMIN_WALLET)
        )


def test_correction_never_reopens_finished_job(db, svc, parties):
    c = _contract(db, parties, status="completed")
    parties["job"].status = "completed"
    db.commit()

    svc.correct_contract_status(
        db, contract_id=c.id, target_status="refunded", reason="escrow refunded off-platform", principal=as_(ADMIN_WALLET)
    )
    assert db.get(JobPosting, parties["job"].id).status == "completed"


# ---------------------------
# GENERAL UPDATE
# ---------------------------


@pytest.mark.parametrize(
    "field,value",
    [
        ("contract_address", new_address()),
        ("employer_id", str(uuid.uuid4())),
        ("employee_id", str(uuid.uuid4())),
        ("job_posting_id", str(uuid.uuid4())),
        ("payment_amount", "1.00"),
    ],
)
@pytest.mark.parametrize("wallet", [EMPLOYER_WALLET, ADMIN_WALLET])
def test_immutable_field_guard_rejects_whole_request(db, svc, parties, field, value, wallet):
    c = _contract(db, parties)
    before = (c.contract_address, c.employer_id, c.employee_id, c.job_posting_id, c.payment_amount)

    with pytest.raises(AuthorizationError):
        svc.update_deployed_contract(
            db,
            contract_id=c.id,
            fields={"status": "disputed", "verification_status": "verified", field: value},
            principal=as_(wallet),
        )

    c = _reload(db, c)
    assert c.status == "active"
    assert c.verification_status == "pending"
    assert (c.contract_address, c.employer_id, c.employee_id, c.job_posting_id, c.payment_amount) == before
    assert _count(db, AuditLog, AuditLog.action == "CONTRACT_UPDATED") == 0


def test_base_role_limited_to_status_fields(db, svc, parties):
    c = _contract(db, parties)
    with pytest.raises(AuthorizationError):
        svc.update_deployed_contract(
            db,
            contract_id=c.id,
            fields={"verification_status": "verified", "total_paid": "10.00"},
            principal=as_(EMPLOYER_WALLET),
        )
    assert _reload(db, c).verification_status == "pending"


def test_employer_updates_status_and_verification(db, svc, parties):
    c = _contract(db, parties)
    out = svc.update_deployed_contract(
        db,
        contract_id=c.id,
        fields={"status": "disputed", "verification_status": "failed"},
        principal=as_(EMPLOYER_WALLET),
    )
    assert out.status == "disputed"
    assert out.verification_status == "failed"
    assert out.last_verification_at is not None


def test_update_status_reuses_role_table(db, svc, parties):
    c = _contract(db, parties)
    with pytest.raises(AuthorizationError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"status": "completed"}, principal=as_(EMPLOYEE_WALLET)
        )


def test_update_mediator_only_while_disputed(db, svc, parties):
    mediator = make_mediator(db)
    c = _contract(db, parties, mediator=mediator)
    with pytest.raises(AuthorizationError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"status": "terminated"}, principal=as_(MEDIATOR_WALLET)
        )


def test_admin_corrects_amounts_and_dates(db, svc, parties):
    c = _contract(db, parties)
    out = svc.update_deployed_contract(
        db,
        contract_id=c.id,
        fields={"total_paid": "125.50", "next_payment_date": "2026-11-01"},
        principal=as_(ADMIN_WALLET),
    )
    assert out.total_paid == Decimal("125.50")
    assert str(out.next_payment_date) == "2026-11-01"


def test_update_rejects_bad_values(db, svc, parties):
    c = _contract(db, parties)
    with pytest.raises(ValidationError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"next_payment_date": "soon"}, principal=as_(ADMIN_WALLET)
        )
    with pytest.raises(ValidationError):
        svc.update_deployed_contract(
            db, contract_id=c.id, fields={"verification_status": "maybe"}, principal=as_(EMPLOYER_WALLET)
        )


# ---------------------------
# COMPLETE WITH PAYMENT
# ---------------------------


def _complete(svc, db, c, wallet=EMPLOYER_WALLET, tx_hash="0x" + "ab" * 32, amount="500.00"):
    return svc.complete_contract_with_payment(
        db,
        contract_id=c.id,
        tx_hash=tx_hash,
        amount=Decimal(amount) if amount is not None else None,
        currency="USDC",
        from_address="0x" + "C" * 40,
        to_address=EMPLOYEE_WALLET,
        block_number=123,
        principal=as_(wallet),
    )


def test_complete_with_payment(db, svc, parties):
    c = _contract(db, parties)
    result = _complete(svc, db, c)

    assert result.already_recorded is False
    assert result.contract.status == "completed"
    assert result.contract.verification_status == "verified"
    assert result.contract.total_paid == Decimal("500.00")
    assert result.contract.last_payment_date is not None
    assert result.payment.status == "completed"
    assert result.payment.payment_type == "final"
    assert result.payment.from_address == "0x" + "c" * 40

    assert db.get(JobApplication, parties["application"].id).application_status == "completed"
    assert db.get(JobPosting, parties["job"].id).status == "completed"


def test_payment_is_idempotent_on_tx_hash(db, svc, parties):
    c = _contract(db, parties)
    first = _complete(svc, db, c)
    second = _complete(svc, db, c)

    assert second.already_recorded is True
    assert second.payment.id == first.payment.id
    assert _reload(db, c).status == "completed"
    assert _reload(db, c).total_paid == Decimal("500.00")
    assert _count(db, PaymentTransaction) == 1


def test_tx_hash_of_another_contract_conflicts(db, svc, parties):
    c1 = _contract(db, parties)
    c2 = _contract(db, parties)
    _complete(svc, db, c1)
    with pytest.raises(ConflictError):
        _complete(svc, db, c2)
    assert _reload(db, c2).status == "active"


def test_already_completed_rejects_new_payment(db, svc, parties):
    c = _contract(db, parties)
    _complete(svc, db, c)
    with pytest.raises(ConflictError):
        _complete(svc, db, c, tx_hash="0x" + "cd" * 32)
    assert _count(db, PaymentTransaction) == 1


def test_complete_requires_tx_hash_and_amount(db, svc, parties):
    c = _contract(db, parties)
    with pytest.raises(ValidationError) as e:
        _complete(svc, db, c, tx_hash="")
    assert e.value.field == "tx_hash"
    with pytest.raises(ValidationError) as e:
        _complete(svc, db, c, amount=None)
    assert e.value.field == "amount"


@pytest.mark.parametrize("wallet", [EMPLOYEE_WALLET, STRANGER_WALLET])
def test_only_employer_or_admin_completes(db, svc, parties, wallet):
    c = _contract(db, parties)
    with pytest.raises(AuthorizationError):
        _complete(svc, db, c, wallet=wallet)
    assert _count(db, PaymentTransaction) == 0


def test_admin_completes(db, svc, parties):
    c = _contract(db, parties)
    assert _complete(svc, db, c, wallet=ADMIN_WALLET).contract.status == "completed"


def test_refunded_contract_cannot_be_completed(db, svc, parties):
    c = _contract(db, parties, status="refunded")
    with pytest.raises(ConflictError):
        _complete(svc, db, c)


def test_reconciler_failure_keeps_payment(db, svc, parties, bus):
    def boom(db, event):
        raise RuntimeError("reconciler down")

    bus.subscribe(boom)
    c = _contract(db, parties)
    result = _complete(svc, db, c)
    assert result.already_recorded is False
    assert _count(db, PaymentTransaction) == 1
    assert _reload(db, c).status == "completed"


def test_completion_resolves_open_dispute(db, svc, parties):
    c = _contract(db, parties)
    svc.request_status_change(
        db, contract_id=c.id, target_status="disputed", principal=as_(EMPLOYEE_WALLET), reason="unpaid"
    )
    _complete(svc, db, c, tx_hash="0x" + "ef" * 32)

    dispute = db.execute(select(DisputeHistory)).scalar_one()
    assert dispute.resolution == "worker_paid"
    assert dispute.resolution_tx_hash == "0x" + "ef" * 32
    assert dispute.resolved_at is not None


# ---------------------------
# DISPUTES / MEDIATION
# ---------------------------


def test_dispute_is_recorded_with_raiser(db, svc, parties):
    c = _contract(db, parties)
    svc.request_status_change(
        db, contract_id=c.id, target_status="disputed", principal=as_(EMPLOYEE_WALLET), reason="work rejected"
    )

    dispute = db.execute(select(DisputeHistory)).scalar_one()
    assert dispute.raised_by_role == "employee"
    assert dispute.raised_by_employee_id == parties["employee"].id
    assert dispute.reason == "work rejected"
    assert dispute.resolved_at is None


def _disputed(db, svc, parties):
    c = _contract(db, parties)
    svc.request_status_change(db, contract_id=c.id, target_status="disputed", principal=as_(EMPLOYER_WALLET))
    return c


def test_assign_mediator(db, svc, parties):
    c = _disputed(db, svc, parties)
    mediator = make_mediator(db)
    out = svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(ADMIN_WALLET))

    assert out.mediator_id == mediator.id
    dispute = db.execute(select(DisputeHistory)).scalar_one()
    assert dispute.mediator_id == mediator.id
    assert dispute.mediator_assigned_at is not None


def test_assign_mediator_is_admin_only(db, svc, parties):
    c = _disputed(db, svc, parties)
    mediator = make_mediator(db)
    with pytest.raises(AuthorizationError):
        svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(EMPLOYER_WALLET))


def test_assign_mediator_requires_dispute(db, svc, parties):
    c = _contract(db, parties)
    mediator = make_mediator(db)
    with pytest.raises(ConflictError):
        svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(ADMIN_WALLET))


def test_mediator_assignment_is_single_shot(db, svc, parties):
    c = _disputed(db, svc, parties)
    first = make_mediator(db)
    second = make_mediator(db, wallet="0x" + "6" * 40)
    svc.assign_mediator(db, contract_id=c.id, mediator_id=first.id, principal=as_(ADMIN_WALLET))
    with pytest.raises(ConflictError):
        svc.assign_mediator(db, contract_id=c.id, mediator_id=second.id, principal=as_(ADMIN_WALLET))
    assert _reload(db, c).mediator_id == first.id


@pytest.mark.parametrize("wallet", [EMPLOYEE_WALLET, EMPLOYER_WALLET])
def test_mediator_cannot_be_a_party(db, svc, parties, wallet):
    c = _disputed(db, svc, parties)
    mediator = make_mediator(db, wallet=wallet)
    with pytest.raises(ConflictError):
        svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(ADMIN_WALLET))
    assert _reload(db, c).mediator_id is None


def test_inactive_or_walletless_mediator_rejected(db, svc, parties):
    c = _disputed(db, svc, parties)
    inactive = make_mediator(db, status="inactive")
    walletless = make_mediator(db, wallet=None)
    for m in (inactive, walletless):
        with pytest.raises(ValidationError):
            svc.assign_mediator(db, contract_id=c.id, mediator_id=m.id, principal=as_(ADMIN_WALLET))


def test_unknown_mediator_not_found(db, svc, parties):
    c = _disputed(db, svc, parties)
    with pytest.raises(NotFoundError):
        svc.assign_mediator(db, contract_id=c.id, mediator_id=uuid.uuid4(), principal=as_(ADMIN_WALLET))


def test_assigned_mediator_resolves_dispute(db, svc, parties):
    c = _disputed(db, svc, parties)
    mediator = make_mediator(db)
    svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(ADMIN_WALLET))

    out = svc.request_status_change(
        db, contract_id=c.id, target_status="terminated", principal=as_(MEDIATOR_WALLET), reason="no delivery"
    )
    assert out.status == "terminated"
    dispute = db.execute(select(DisputeHistory)).scalar_one()
    assert dispute.resolution == "employer_refunded"
    assert dispute.mediator_id == mediator.id
    assert _reload(db, c).mediator_id is None
    assert db.get(JobPosting, parties["job"].id).status == "closed"


def test_second_dispute_gets_a_fresh_mediator(db, svc, parties):
    c = _disputed(db, svc, parties)
    first = make_mediator(db)
    second = make_mediator(db, wallet="0x" + "6" * 40)
    svc.assign_mediator(db, contract_id=c.id, mediator_id=first.id, principal=as_(ADMIN_WALLET))

    svc.request_status_change(
        db, contract_id=c.id, target_status="active", principal=as_(ADMIN_WALLET), reason="settled"
    )
    assert _reload(db, c).mediator_id is None

    svc.request_status_change(
        db, contract_id=c.id, target_status="disputed", principal=as_(EMPLOYEE_WALLET), reason="again"
    )
    out = svc.assign_mediator(db, contract_id=c.id, mediator_id=second.id, principal=as_(ADMIN_WALLET))
    assert out.mediator_id == second.id

    rows = db.execute(select(DisputeHistory).order_by(DisputeHistory.raised_at)).scalars().all()
    assert [(d.mediator_id, d.resolution) for d in rows] == [(first.id, "cancelled"), (second.id, None)]

    # the earlier mediator keeps read access to the history
    assert len(svc.list_disputes(db, contract_id=c.id, principal=as_(MEDIATOR_WALLET))) == 2
    with pytest.raises(AuthorizationError):
        svc.list_disputes(db, contract_id=c.id, principal=as_(STRANGER_WALLET))


# ---------------------------
# READS
# ---------------------------


def test_get_contract_for_parties_only(db, svc, parties):
    c = _contract(db, parties)
    for wallet in (EMPLOYER_WALLET, EMPLOYEE_WALLET, ADMIN_WALLET):
        assert svc.get_contract(db, contract_id=c.id, principal=as_(wallet)).id == c.id
    with pytest.raises(AuthorizationError):
        svc.get_contract(db, contract_id=c.id, principal=as_(STRANGER_WALLET))


def test_list_for_employer_terminated_filter_includes_refunded(db, svc, parties):
    _contract(db, parties, status="terminated")
    _contract(db, parties, status="refunded")
    _contract(db, parties, status="active")

    rows = svc.list_for_employer(
        db, employer_id=parties["employer"].id, principal=as_(EMPLOYER_WALLET), status="terminated"
    )
    assert sorted(r.status for r in rows) == ["refunded", "terminated"]

    rows = svc.list_for_employer(db, employer_id=parties["employer"].id, principal=as_(ADMIN_WALLET))
    assert len(rows) == 3


def test_list_for_employer_is_self_or_admin(db, svc, parties):
    with pytest.raises(AuthorizationError):
        svc.list_for_employer(db, employer_id=parties["employer"].id, principal=as_(EMPLOYEE_WALLET))


def test_list_for_employee(db, svc, parties):
    _contract(db, parties, status="completed")
    rows = svc.list_for_employee(
        db, employee_id=parties["employee"].id, principal=as_(EMPLOYEE_WALLET), status="completed"
    )
    assert len(rows) == 1
    with pytest.raises(AuthorizationError):
        svc.list_for_employee(db, employee_id=parties["employee"].id, principal=as_(EMPLOYER_WALLET))


def test_dispute_queues(db, svc, parties):
    mediator = make_mediator(db)
    _contract(db, parties, status="disputed", mediator=mediator)
    _contract(db, parties, status="disputed")
    _contract(db, parties, status="active")

    assert len(svc.list_disputed(db, principal=as_(ADMIN_WALLET))) == 2
    with pytest.raises(AuthorizationError):
        svc.list_disputed(db, principal=as_(MEDIATOR_WALLET))

    assert len(svc.list_for_mediator(db, mediator_id=mediator.id, principal=as_(MEDIATOR_WALLET))) == 1
    with pytest.raises(AuthorizationError):
        svc.list_for_mediator(db, mediator_id=mediator.id, principal=as_(EMPLOYER_WALLET))


def test_payment_and_dispute_history_reads(db, svc, parties):
    c = _disputed(db, svc, parties)
    mediator = make_mediator(db)
    svc.assign_mediator(db, contract_id=c.id, mediator_id=mediator.id, principal=as_(ADMIN_WALLET))
    _complete(svc, db, c)

    assert len(svc.list_payments(db, contract_id=c.id, principal=as_(EMPLOYEE_WALLET))) == 1
    with pytest.raises(AuthorizationError):
        svc.list_payments(db, contract_id=c.id, principal=as_(MEDIATOR_WALLET))

    disputes = svc.list_disputes(db, contract_id=c.id, principal=as_(MEDIATOR_WALLET))
    assert [d.resolution for d in disputes] == ["worker_paid"]
