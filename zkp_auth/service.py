"""
zkp_auth/service.py

ZKP login orchestration.

One login attempt walks these states and stops at the first failure:

  RECEIVED -> PARSED -> PROOF_VERIFIED -> MEMBERSHIP_CONFIRMED
           -> ACCOUNT_RECONCILED -> SESSION_ISSUED

Every failure is raised as a LoginError carrying the client-facing code and
HTTP status; nothing from the transport layer reaches the caller verbatim.
"""

import logging
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .accounts import Account, DuplicateAccountError, InMemoryAccountStore, Role
from .audit import NullAuditLog, build_common
from .membership import ClubCheckError, ClubMembership, MembershipChecker
from .proof import ZkpError, as_proof_source, parse_zkp_code
from .tokens import TokenIssuer
from .verifier import ProofVerifier, VerificationOutcome

logger = logging.getLogger(__name__)


class LoginErrorCode(str, Enum):
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INVALID_ZKP_CODE = "INVALID_ZKP_CODE"
    PROOF_INVALID = "PROOF_INVALID"
    CLUB_CHECK_FAILED = "CLUB_CHECK_FAILED"
    NOT_CLUB_MEMBER = "NOT_CLUB_MEMBER"
    SERVER_ERROR = "SERVER_ERROR"


STATUS_CODES = {
    LoginErrorCode.INVALID_PAYLOAD: 400,
    LoginErrorCode.INVALID_ZKP_CODE: 400,
    LoginErrorCode.PROOF_INVALID: 401,
    LoginErrorCode.NOT_CLUB_MEMBER: 403,
    LoginErrorCode.CLUB_CHECK_FAILED: 500,
    LoginErrorCode.SERVER_ERROR: 500,
}


class LoginError(Exception):
    def __init__(
        self,
        code: LoginErrorCode,
        message: str,
        details: Optional[str] = None,
        stack: Optional[str] = None,
    ):
        self.code = code
        self.status_code = STATUS_CODES[code]
        self.message = message
        self.details = details
        self.stack = stack
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.code.value, "message": self.message}
        if self.details:
            out["details"] = self.details
        if self.stack:
            out["stack"] = self.stack
        return out


@dataclass
class LoginResult:
    token: str
    user: Dict[str, Any]
    address: str
    tx_hash: Optional[str] = None
    created: bool = field(default=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"token": self.token, "user": self.user, "address": self.address}
        if self.tx_hash:
            out["txHash"] = self.tx_hash
        return out


class ZkpLoginService:
    def __init__(
        self,
        verifier: ProofVerifier,
        membership: MembershipChecker,
        accounts: InMemoryAccountStore,
        tokens: TokenIssuer,
        audit=None,
        expose_error_details: bool = False,
    ):
        self.verifier = verifier
        self.membership = membership
        self.accounts = accounts
        self.tokens = tokens
        self.audit = audit or NullAuditLog()
        self.expose_error_details = expose_error_details

    # -------------------------------------------------------------------------
    # Audit helpers
    # -------------------------------------------------------------------------
    def _deny(self, code: LoginErrorCode, message: str, ctx: Dict[str, Any], details: Optional[str] = None):
        result = "error" if STATUS_CODES[code] >= 500 else "denied"
        self.audit.append({**ctx, "result": result, "reason": code.value})
        raise LoginError(code, message, details=details)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------
    def _verify(self, zkp_code: Any, ctx: Dict[str, Any]) -> VerificationOutcome:
        try:
            proof = parse_zkp_code(as_proof_source(zkp_code))
        except ZkpError as e:
            logger.warning("[ZKP Login] Unparseable zkpCode: %s", e.code)
            self._deny(LoginErrorCode.INVALID_ZKP_CODE, e.message, ctx, details=e.code)

        try:
            return self.verifier.verify(proof)
        except ZkpError as e:
            logger.warning("[ZKP Login] Proof verification error: %s", e.message)
            self._deny(LoginErrorCode.INVALID_ZKP_CODE, e.message, ctx, details=e.code)
        except Exception:
            logger.exception("[ZKP Login] Proof verification error")
            self._deny(LoginErrorCode.INVALID_ZKP_CODE, "Proof verification failed", ctx)

    def _check_club(self, address: str, ctx: Dict[str, Any]) -> ClubMembership:
        try:
            club = self.membership.check(address)
        except ClubCheckError:
            logger.exception("[ZKP Login] Club membership check error")
            self._deny(LoginErrorCode.CLUB_CHECK_FAILED, "Failed to verify club membership", ctx)

        if not club.is_member and not club.is_owner:
            logger.warning("[ZKP Login] User %s is not a member of club %s", address, club.club_name)
            self._deny(
                LoginErrorCode.NOT_CLUB_MEMBER,
                f"You must be a member of {club.club_name} to access this application",
                {**ctx, "club": club.club_name},
            )

        logger.info("[ZKP Login] User %s is a member of club %s", address, club.club_name)
        return club

    def _reconcile(self, address: str, zkp_hash: str):
        account = self.accounts.find_by_address(address)

        if account is None:
            try:
                account = self.accounts.create(
                    Account.for_wallet(address, zkp_hash, Role.USER),
                    first_account_role=Role.ADMIN,
                )
                logger.info("[ZKP Login] Created new user for wallet: %s", address)
                return account, True
            except DuplicateAccountError:
                # a concurrent first login created it first
                account = self.accounts.find_by_address(address)
                if account is None:
                    raise

        self.accounts.update(account.id, {"zkp_hash": zkp_hash})
        account = self.accounts.get(account.id)
        logger.info("[ZKP Login] Updated zkpHash for existing user: %s", address)
        return account, False

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------
    def login(
        self,
        zkp_code: Any,
        request_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        ctx = build_common(request_ip=request_ip, user_agent=user_agent)

        try:
            if not zkp_code:
                logger.warning("[ZKP Login] Missing zkpCode in request body")
                self._deny(LoginErrorCode.INVALID_PAYLOAD, "zkpCode is required", ctx)

            outcome = self._verify(zkp_code, ctx)
            if not outcome.is_valid:
                logger.warning("[ZKP Login] Invalid proof for address attempt")
                self._deny(LoginErrorCode.PROOF_INVALID, "ZKP proof is invalid", ctx)

            address = outcome.address
            ctx = {**ctx, **build_common(address=address, zkp_hash=outcome.zkp_hash, tx_hash=outcome.tx_hash)}
            logger.info("[ZKP Login] Valid proof for address: %s", address)

            club = self._check_club(address, ctx)

            account, created = self._reconcile(address, outcome.zkp_hash)
            token = self.tokens.issue(account.id)

            self.audit.append({
                **ctx,
                "club": club.club_name,
                "result": "approved",
                "reason": "account_created" if created else "account_updated",
                "role": account.role.value,
            })
            logger.info("[ZKP Login] Login successful for wallet: %s", address)

            return LoginResult(
                token=token,
                user=account.public_view(),
                address=address,
                tx_hash=outcome.tx_hash,
                created=created,
            )

        except LoginError:
            raise
        except Exception as e:
            logger.exception("[ZKP Login] Controller error")
            try:
                self.audit.append({**ctx, "result": "error", "reason": LoginErrorCode.SERVER_ERROR.value})
            except Exception:
                logger.exception("[ZKP Login] Failed to audit server error")
            details = stack = None
            if self.expose_error_details:
                details, stack = str(e), traceback.format_exc()
            raise LoginError(
                LoginErrorCode.SERVER_ERROR,
                "An error occurred during ZKP authentication",
                details=details,
                stack=stack,
            ) from e
