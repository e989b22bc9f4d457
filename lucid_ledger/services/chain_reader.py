#lucid_ledger/services/chain_reader.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Protocol

from web3 import Web3

from lucid_ledger.core.errors import ChainReadError
from lucid_ledger.core.statuses import ContractStatus

logger = logging.getLogger(__name__)


# Escrow contract state enum, as numbered in Solidity.
ON_CHAIN_STATE_TO_STATUS: Dict[int, ContractStatus] = {
    0: ContractStatus.active,  # Funded
    1: ContractStatus.completed,
    2: ContractStatus.disputed,
    3: ContractStatus.refunded,  # refunded or terminated; chain does not distinguish
}

# Read-only surface of the escrow contract
ESCROW_READ_ABI = [
    {
        "inputs": [],
        "name": "state",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getBalance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class ChainSnapshot:
    contract_address: str
    state: int
    balance: int  # token base units

    @property
    def status(self) -> Optional[ContractStatus]:
        return ON_CHAIN_STATE_TO_STATUS.get(self.state)

    def balance_in_tokens(self, decimals: int) -> Decimal:
        return Decimal(self.balance) / (Decimal(10) ** decimals)


class ChainReader(Protocol):
    def read(self, contract_address: str) -> ChainSnapshot:
        """Raise ChainReadError when the contract cannot be read."""
        ...


class Web3ChainReader:
    """
    Reads escrow state over JSON-RPC. Never sends transactions;
    state-changing calls are submitted by the client wallet.
    """

    def __init__(self, rpc_url: str, timeout_seconds: int = 30):
        self.rpc_url = rpc_url
        self._w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds}))

    def read(self, contract_address: str) -> ChainSnapshot:
        try:
            address = Web3.to_checksum_address(contract_address)
        except ValueError as exc:
            raise ChainReadError(contract_address, f"invalid address: {exc}") from exc

        contract = self._w3.eth.contract(address=address, abi=ESCROW_READ_ABI)
        try:
            state = contract.functions.state().call()
            balance = contract.functions.getBalance().call()
        except Exception as exc:  # web3 surfaces RPC, ABI and connection failures as unrelated types
            raise ChainReadError(contract_address, str(exc)) from exc

        logger.debug(
            "chain state read",
            extra={"contract_address": contract_address, "state": int(state), "balance": int(balance)},
        )
        return ChainSnapshot(contract_address=contract_address, state=int(state), balance=int(balance))
