from functools import lru_cache
from typing import FrozenSet, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Lucid Ledger"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── CALLER IDENTITY ───────────
    # Upstream authenticator forwards the verified wallet in this header.
    wallet_header: str = "X-Wallet-Address"
    trust_wallet_header: bool = True
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"

    # comma separated wallet addresses
    admin_wallets: str = ""

    # ─────────── CHAIN ───────────
    chain_rpc_url: str = "https://sepolia.base.org"
    chain_request_timeout_seconds: int = 30
    payment_token_decimals: int = 6  # USDC

    @property
    def admin_wallet_set(self) -> FrozenSet[str]:
        return frozenset(
            item.strip().lower() for item in self.admin_wallets.split(",") if item.strip()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
