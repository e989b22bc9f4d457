# Importing every model registers it on Base.metadata (alembic, tests).
from lucid_ledger.models.employer import Employer  # noqa: F401
from lucid_ledger.models.employee import Employee  # noqa: F401
from lucid_ledger.models.mediator import Mediator  # noqa: F401
from lucid_ledger.models.job_posting import JobPosting  # noqa: F401
from lucid_ledger.models.job_application import JobApplication  # noqa: F401
from lucid_ledger.models.deployed_contract import DeployedContract  # noqa: F401
from lucid_ledger.models.payment_transaction import PaymentTransaction  # noqa: F401
from lucid_ledger.models.dispute_history import DisputeHistory  # noqa: F401
from lucid_ledger.models.audit_log import AuditLog  # noqa: F401
