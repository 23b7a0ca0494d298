"""
Test configuration and fakes.

The chain fakes mimic the small slice of web3 the service uses:

    w3.eth.contract(address=..., abi=...).functions.<name>(*args).call(tx)

Each contract answer is configured per (address, function name) and may be a
value, an exception instance (raised on call) or a callable taking the call
arguments.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from zkp_auth.accounts import InMemoryAccountStore  # noqa: E402
from zkp_auth.audit import AuditLog  # noqa: E402
from zkp_auth.chain import ChainClients  # noqa: E402
from zkp_auth.config import Settings  # noqa: E402
from zkp_auth.membership import MembershipChecker  # noqa: E402
from zkp_auth.service import ZkpLoginService  # noqa: E402
from zkp_auth.tokens import TokenIssuer  # noqa: E402
from zkp_auth.verifier import ProofVerifier, VerificationRecorder  # noqa: E402


# EIP-55 test vectors (valid checksums)
USER_ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"
OTHER_ADDRESS = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"
SIGNER_ADDRESS = "0xde709f2102306220921060314715629080e2fb77"

FLAT_PROOF = "1,2,3,4,5,6,7,8,9"
JSON_PROOF = '{"a":[1,2],"b":[[3,4],[5,6]],"c":[7,8],"input":[9]}'


# ============================================================================
# Chain fakes
# ============================================================================

@dataclass
class FakeCall:
    chain: "FakeChain"
    address: str
    name: str
    args: Tuple[Any, ...]

    def call(self, tx: Optional[dict] = None):
        self.chain.calls.append((self.address, self.name, self.args, tx))
        answer = self.chain.answers[(self.address, self.name)]
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(*self.args)
        return answer


class FakeFunctions:
    def __init__(self, chain: "FakeChain", address: str):
        self._chain = chain
        self._address = address

    def __getattr__(self, name: str):
        def bind(*args):
            return FakeCall(self._chain, self._address, name, args)
        return bind


class FakeContract:
    def __init__(self, chain: "FakeChain", address: str):
        self.address = address
        self.functions = FakeFunctions(chain, address)


class FakeEth:
    def __init__(self, chain: "FakeChain"):
        self._chain = chain

    def contract(self, address: str, abi: list):
        return FakeContract(self._chain, address)


class FakeWeb3:
    def __init__(self, chain: "FakeChain"):
        self.eth = FakeEth(chain)


class FakeWallet:
    def __init__(self, chain: "FakeChain", address: str = SIGNER_ADDRESS):
        self.chain = chain
        self.address = address
        self.w3 = FakeWeb3(chain)
        self.sent: List[FakeCall] = []
        self.error: Optional[Exception] = None

    def transact(self, call: FakeCall) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(call)
        return "0x" + f"{len(self.sent):064x}"


@dataclass
class FakeChain:
    answers: Dict[Tuple[str, str], Any] = field(default_factory=dict)
    calls: List[Tuple[str, str, tuple, Optional[dict]]] = field(default_factory=list)
    wallet: Optional[FakeWallet] = None
    factory_calls: int = 0

    def enable_wallet(self) -> FakeWallet:
        self.wallet = FakeWallet(self)
        return self.wallet

    def clients_factory(self, settings: Settings) -> ChainClients:
        self.factory_calls += 1
        return ChainClients(public=FakeWeb3(self), wallet=self.wallet)

    def calls_to(self, name: str) -> list:
        return [c for c in self.calls if c[1] == name]


def club_details(admin: str, active: bool = True) -> list:
    return [1, admin, active, 3, "justhub", "JH", "desc", "", "", ""]


# ============================================================================
# Logging
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# ============================================================================
# Component fixtures
# ============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        AUDIT_DIR=tmp_path / "audit",
        ZKP_PRIVATE_KEY="",
        ZKP_WRITE_MODE="sync",
        EXPOSE_ERROR_DETAILS=False,
    )


@pytest.fixture
def chain(settings) -> FakeChain:
    """Chain where USER_ADDRESS holds a valid proof and is a permanent member."""
    c = FakeChain()
    c.answers[(settings.PROOF_OF_OWNERSHIP_ADDRESS, "verifyProof")] = [USER_ADDRESS, True]
    c.answers[(settings.CLUB_MANAGER_ADDRESS, "getClubDetails")] = club_details(OTHER_ADDRESS)
    c.answers[(settings.MEMBERSHIP_QUERY_ADDRESS, "checkDetailedMembership")] = [True, False, False, False]
    return c


@pytest.fixture
def audit(settings) -> AuditLog:
    return AuditLog(settings.AUDIT_DIR)


@pytest.fixture
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(Ed25519PrivateKey.generate(), ttl_seconds=900)


@pytest.fixture
def verifier(settings, chain, audit) -> ProofVerifier:
    recorder = VerificationRecorder(settings.ZKP_WRITE_MODE, audit=audit)
    return ProofVerifier(settings, recorder=recorder, clients_factory=chain.clients_factory)


@pytest.fixture
def checker(settings, chain) -> MembershipChecker:
    return MembershipChecker(settings, clients_factory=chain.clients_factory)


@pytest.fixture
def service(verifier, checker, store, issuer, audit) -> ZkpLoginService:
    return ZkpLoginService(
        verifier=verifier,
        membership=checker,
        accounts=store,
        tokens=issuer,
        audit=audit,
    )
