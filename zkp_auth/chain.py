"""
zkp_auth/chain.py

Chain client provider.

Every call to get_clients() builds fresh clients from the settings it is
given:
  - public : read-only Web3 over HTTP, always present
  - wallet : signing client, only when ZKP_PRIVATE_KEY is configured

Constructing a Web3 HTTP client does not touch the network, so there is
nothing to cache here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .config import Settings

logger = logging.getLogger(__name__)


def normalize_private_key(key: str) -> str:
    """Return the key with its 0x prefix (accepts keys pasted without it)."""
    key = (key or "").strip()
    if not key:
        return ""
    return key if key.startswith("0x") else f"0x{key}"


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address equality (checksum casing is not significant)."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()


@dataclass
class WalletClient:
    """Web3 plus a local signing account, bound to one chain id."""

    w3: Web3
    account: LocalAccount
    chain_id: int

    @property
    def address(self) -> str:
        return self.account.address

    def transact(self, contract_function: Any) -> str:
        """
        Sign and broadcast a transaction for a bound contract function call.

        Returns the transaction hash as 0x-prefixed hex. Gas and fee fields
        are filled in by web3 (estimate_gas / fee history).
        """
        tx = contract_function.build_transaction({
            "from": self.account.address,
            "nonce": self.w3.eth.get_transaction_count(self.account.address),
            "chainId": self.chain_id,
        })
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)


@dataclass
class ChainClients:
    public: Web3
    wallet: Optional[WalletClient] = None

    @property
    def signer_address(self) -> Optional[str]:
        return self.wallet.address if self.wallet else None


def get_clients(settings: Settings) -> ChainClients:
    public = Web3(Web3.HTTPProvider(settings.RPC_URL))

    private_key = normalize_private_key(settings.ZKP_PRIVATE_KEY)
    if not private_key:
        return ChainClients(public=public)

    account = Account.from_key(private_key)
    logger.debug("[CHAIN] Write client enabled for signer %s", account.address)
    wallet = WalletClient(
        w3=Web3(Web3.HTTPProvider(settings.RPC_URL)),
        account=account,
        chain_id=settings.CHAIN_ID,
    )
    return ChainClients(public=public, wallet=wallet)
