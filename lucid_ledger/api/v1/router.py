from fastapi import APIRouter

from lucid_ledger.api.v1.health import router as health_router
from lucid_ledger.api.v1.deployed_contracts import router as deployed_contracts_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# CONTRACT LIFECYCLE
# ------------------------------------------------------------------
v1_router.include_router(deployed_contracts_router, tags=["deployed-contracts"])
