"""
zkp_auth/verifier.py

On-chain proof verification.

verifyProof() on the ProofOfOwnership contract is declared non-view (it also
records the verification when sent as a transaction), so the authoritative
check is an eth_call simulation. The transaction is a best-effort audit trail
and never decides the outcome.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .audit import NullAuditLog, build_common
from .chain import ChainClients, WalletClient, get_clients
from .config import Settings
from .proof import ProofPayload, to_contract_args

logger = logging.getLogger(__name__)


VERIFIER_ABI = [
    {
        "inputs": [
            {"name": "a", "type": "uint256[2]"},
            {"name": "b", "type": "uint256[2][2]"},
            {"name": "c", "type": "uint256[2]"},
            {"name": "input", "type": "uint256[1]"},
        ],
        "name": "verifyProof",
        "outputs": [
            {"name": "hashDeployer", "type": "address"},
            {"name": "isValid", "type": "bool"},
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


@dataclass
class VerificationOutcome:
    is_valid: bool
    address: str = ""
    zkp_hash: str = ""
    tx_hash: Optional[str] = None


class VerificationRecorder:
    """
    Submits the verifyProof transaction after a successful simulation.

    Modes:
      - sync       : submit inline, return the tx hash
      - background : submit on a daemon thread, return None
      - off        : never submit

    Failures are logged and audited, never raised.
    """

    def __init__(self, mode: str = "sync", audit=None):
        self.mode = mode
        self.audit = audit or NullAuditLog()

    def _audit(self, event: dict) -> None:
        try:
            self.audit.append(event)
        except Exception as e:
            logger.warning("[ZKP] Failed to audit on-chain write (%s): %s", event.get("reason"), e)

    def _submit(self, wallet: WalletClient, call: Any, address: str, zkp_hash: str) -> Optional[str]:
        try:
            tx_hash = wallet.transact(call)
        except Exception as e:
            logger.warning("[ZKP] Failed to write proof on-chain: %s", e)
            self._audit({
                **build_common(address=address, zkp_hash=zkp_hash),
                "result": "error",
                "reason": "onchain_write_failed",
                "detail": str(e)[:200],
            })
            return None

        logger.info("[ZKP] Proof verified on-chain. TxHash: %s", tx_hash)
        self._audit({
            **build_common(address=address, zkp_hash=zkp_hash, tx_hash=tx_hash),
            "result": "recorded",
            "reason": "onchain_write_submitted",
        })
        return tx_hash

    def record(self, wallet: Optional[WalletClient], call: Any, address: str, zkp_hash: str) -> Optional[str]:
        if wallet is None or self.mode == "off":
            logger.debug("[ZKP] On-chain write skipped (mode=%s, wallet=%s)", self.mode, wallet is not None)
            return None

        if self.mode == "background":
            threading.Thread(
                target=self._submit,
                args=(wallet, call, address, zkp_hash),
                name="zkp-onchain-write",
                daemon=True,
            ).start()
            return None

        return self._submit(wallet, call, address, zkp_hash)


class ProofVerifier:
    def __init__(
        self,
        settings: Settings,
        recorder: Optional[VerificationRecorder] = None,
        clients_factory: Callable[[Settings], ChainClients] = get_clients,
    ):
        self.settings = settings
        self.recorder = recorder or VerificationRecorder(settings.ZKP_WRITE_MODE)
        self.clients_factory = clients_factory

    def verify(self, proof: ProofPayload) -> VerificationOutcome:
        """
        Check a proof against the verifier contract.

        Raises ZkpError for non-numeric or mis-shaped values. RPC errors
        from the simulation propagate unchanged.
        """
        a, b, c, inp = to_contract_args(proof)
        clients = self.clients_factory(self.settings)

        def _call(w3):
            contract = w3.eth.contract(
                address=self.settings.PROOF_OF_OWNERSHIP_ADDRESS,
                abi=VERIFIER_ABI,
            )
            return contract.functions.verifyProof(a, b, c, inp)

        sim_tx = {"from": clients.signer_address} if clients.signer_address else {}
        address, is_valid = _call(clients.public).call(sim_tx)

        if not is_valid:
            return VerificationOutcome(is_valid=False)

        zkp_hash = proof.public_input

        tx_hash = None
        if clients.wallet is not None:
            tx_hash = self.recorder.record(clients.wallet, _call(clients.wallet.w3), address, zkp_hash)

        return VerificationOutcome(is_valid=True, address=address, zkp_hash=zkp_hash, tx_hash=tx_hash)
