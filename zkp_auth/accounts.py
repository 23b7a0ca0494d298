# zkp_auth/accounts.py
import secrets
import threading
import time
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


# never leaves the server
SENSITIVE_FIELDS = ("password", "totp_secret", "revision")


class DuplicateAccountError(Exception):
    """An account for this wallet address already exists."""


def display_name(address: str) -> str:
    """Short wallet form used as name/username: 0x1234...abcd"""
    return f"{address[:6]}...{address[-4:]}"


@dataclass
class Account:
    wallet_address: str
    zkp_hash: str
    role: Role = Role.USER

    id: str = ""
    provider: str = "zkp"
    email: str = ""
    zkp_id: str = ""
    email_verified: bool = True
    name: str = ""
    username: str = ""
    created_at: int = field(default_factory=lambda: int(time.time()))
    updated_at: int = 0

    # credential material; empty for wallet accounts
    password: Optional[str] = None
    totp_secret: Optional[str] = None
    revision: int = 0

    @classmethod
    def for_wallet(cls, address: str, zkp_hash: str, role: Role) -> "Account":
        short = display_name(address)
        return cls(
            wallet_address=address,
            zkp_hash=zkp_hash,
            role=role,
            zkp_id=address,
            name=short,
            username=short,
        )

    def public_view(self) -> Dict[str, Any]:
        out = asdict(self)
        for k in SENSITIVE_FIELDS:
            out.pop(k, None)
        out["id"] = str(self.id)
        out["role"] = self.role.value
        return out


class InMemoryAccountStore:
    """
    Keyed account store (by lowercased wallet address).

    create() is the uniqueness backstop: two concurrent first logins for the
    same address race on the lock and the loser gets DuplicateAccountError.
    It also decides first_account_role under that lock, so only the record
    that lands in an empty store receives it.
    """

    def __init__(self):
        self.accounts: Dict[str, Account] = {}
        self.by_address: Dict[str, str] = {}
        self._lock = threading.Lock()

    def find_by_address(self, address: str) -> Optional[Account]:
        with self._lock:
            account_id = self.by_address.get((address or "").lower())
            if account_id is None:
                return None
            return replace(self.accounts[account_id])

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            acct = self.accounts.get(account_id)
            return replace(acct) if acct else None

    def create(self, account: Account, first_account_role: Optional[Role] = None) -> Account:
        key = account.wallet_address.lower()
        with self._lock:
            if key in self.by_address:
                raise DuplicateAccountError(account.wallet_address)

            role = account.role
            if first_account_role is not None and not self.accounts:
                role = first_account_role

            stored = replace(account, id=secrets.token_hex(12), role=role)
            self.accounts[stored.id] = stored
            self.by_address[key] = stored.id
            return replace(stored)

    def update(self, account_id: str, patch: Dict[str, Any]) -> None:
        allowed = {f.name for f in fields(Account)} - {"id", "wallet_address", "revision", "updated_at"}
        unknown = set(patch) - allowed
        if unknown:
            raise ValueError(f"unknown account fields: {sorted(unknown)}")

        with self._lock:
            acct = self.accounts.get(account_id)
            if acct is None:
                raise KeyError(account_id)
            self.accounts[account_id] = replace(
                acct,
                **patch,
                revision=acct.revision + 1,
                updated_at=int(time.time()),
            )

    def count(self) -> int:
        with self._lock:
            return len(self.accounts)
