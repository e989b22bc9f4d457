import os

# settings are cached on first import; configure before any lucid_ledger import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_WALLETS"] = "0xAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import uuid
from decimal import Decimal
from typing import Dict, Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import lucid_ledger.models  # noqa

from lucid_ledger.core.errors import ChainReadError
from lucid_ledger.db.base import Base
from lucid_ledger.db.session import get_db
from lucid_ledger.models.deployed_contract import DeployedContract
from lucid_ledger.models.employee import Employee
from lucid_ledger.models.employer import Employer
from lucid_ledger.models.job_application import JobApplication
from lucid_ledger.models.job_posting import JobPosting
from lucid_ledger.models.mediator import Mediator
from lucid_ledger.policies.rbac import Principal, RoleResolver
from lucid_ledger.services.chain_reader import ChainSnapshot
from lucid_ledger.services.events import ContractEventBus
from lucid_ledger.services.job_reconciler import JobStatusReconciler
from lucid_ledger.services.lifecycle_service import ContractLifecycleService

ADMIN_WALLET = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
EMPLOYER_WALLET = "0x1111111111111111111111111111111111111111"
EMPLOYEE_WALLET = "0x2222222222222222222222222222222222222222"
MEDIATOR_WALLET = "0x3333333333333333333333333333333333333333"
STRANGER_WALLET = "0x9999999999999999999999999999999999999999"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def bus():
    b = ContractEventBus()
    b.subscribe(JobStatusReconciler().handle)
    return b


@pytest.fixture
def svc(bus):
    return ContractLifecycleService(RoleResolver({ADMIN_WALLET}), bus)


@pytest.fixture
def client(db):
    from lucid_ledger.main import app

    def _override():
        yield db

    app.dependency_overrides[get_db] = _override
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def as_(wallet):
    return Principal(wallet_address=wallet)


def wallet_headers(wallet: str) -> Dict[str, str]:
    return {"X-Wallet-Address": wallet}


def new_address() -> str:
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8]


# ---------------------------
# FACTORIES
# ---------------------------


def make_employer(db, wallet=EMPLOYER_WALLET):
    e = Employer(company_name="Acme", email=f"{uuid.uuid4().hex}@acme.test", wallet_address=wallet)
    db.add(e)
    db.commit()
    return e


def make_employee(db, wallet=EMPLOYEE_WALLET):
    e = Employee(first_name="Wren", last_name="Hale", email=f"{uuid.uuid4().hex}@mail.test", wallet_address=wallet)
    db.add(e)
    db.commit()
    return e


def make_mediator(db, wallet=MEDIATOR_WALLET, status="active"):
    m = Mediator(email=f"{uuid.uuid4().hex}@mediate.test", wallet_address=wallet, status=status)
    db.add(m)
    db.commit()
    return m


def make_job(db, employer, positions=1, status="active"):
    j = JobPosting(employer_id=employer.id, title="Site survey", positions_available=positions, status=status)
    db.add(j)
    db.commit()
    return j


def make_application(db, job, employee, snapshot=None, status="accepted"):
    a = JobApplication(
        job_posting_id=job.id,
        employee_id=employee.id,
        application_status=status,
        contract_snapshot=snapshot,
    )
    db.add(a)
    db.commit()
    return a


def make_contract(db, job, employer, employee, status="active", mediator=None, amount="500.00"):
    c = DeployedContract(
        contract_address=new_address(),
        job_posting=job,
        employer=employer,
        employee=employee,
        mediator=mediator,
        payment_amount=Decimal(amount),
        status=status,
    )
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def parties(db):
    """Employer, employee and an active one-position job with an accepted application."""
    employer = make_employer(db)
    employee = make_employee(db)
    job = make_job(db, employer)
    application = make_application(db, job, employee, snapshot={"rate": "500.00", "terms": "v1"})
    return {"employer": employer, "employee": employee, "job": job, "application": application}


# ---------------------------
# CHAIN
# ---------------------------


class FakeChainReader:
    """Address -> on-chain state number, or an exception to raise."""

    def __init__(self, states: Dict[str, Union[int, Exception]] = None, balance: int = 0):
        self.states = {k.lower(): v for k, v in (states or {}).items()}
        self.balance = balance
        self.calls = []

    def read(self, contract_address: str) -> ChainSnapshot:
        self.calls.append(contract_address)
        value = self.states.get(contract_address)
        if value is None:
            raise ChainReadError(contract_address, "execution reverted")
        if isinstance(value, Exception):
            raise value
        return ChainSnapshot(contract_address=contract_address, state=value, balance=self.balance)
