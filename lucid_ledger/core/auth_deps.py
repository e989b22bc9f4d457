#lucid_ledger/core/auth_deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lucid_ledger.core.config import get_settings
from lucid_ledger.core.security import decode_token, normalize_address
from lucid_ledger.policies.rbac import Principal

bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Principal:
    """
    Canonical caller-identity dependency.

    Guarantees:
    - a bearer token, when sent, is valid and carries wallet_address
    - without a token, the upstream wallet header is used if trusted
    - otherwise the principal has no wallet and every guarded
      operation rejects it (fail closed)
    """
    settings = get_settings()

    if creds is not None:
        try:
            payload = decode_token(creds.credentials)
        except Exception:
            raise HTTPException(status_code=401, detail="Invalid or expired token.")

        wallet = normalize_address(payload.get("wallet_address"))
        if not wallet:
            raise HTTPException(status_code=401, detail="Token missing wallet_address claim.")
        principal = Principal(wallet_address=wallet, subject=payload.get("sub"))
    elif settings.trust_wallet_header:
        principal = Principal(
            wallet_address=normalize_address(request.headers.get(settings.wallet_header))
        )
    else:
        principal = Principal(wallet_address=None)

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal
