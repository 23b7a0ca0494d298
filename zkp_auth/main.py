# zkp_auth/main.py
#
# -----------------------------------------------------------------------------
# Architectural notes (high level)
# -----------------------------------------------------------------------------
# This file is thin orchestration glue:
#   - It wires HTTP endpoints to the login service.
#   - It MUST NOT talk to the chain itself (verifier.py / membership.py do).
#   - It builds every component once, from one Settings object, in create_app().
#
# Key modules / responsibilities:
#   - config.py      : environment-driven settings (RPC, contracts, club, keys)
#   - proof.py       : pure proof parsing (two encodings) + form validation
#   - chain.py       : read client + optional signing client factory
#   - verifier.py    : verifyProof simulation + best-effort transaction
#   - membership.py  : club activation / ownership / membership gate
#   - accounts.py    : account records + in-memory keyed store
#   - tokens.py      : Ed25519 session tokens
#   - models.py      : request bodies with a fixed shape
#   - service.py     : login state machine, error taxonomy
#   - audit.py       : append-only audit log (security telemetry, forensics)
#
# Route handlers are plain `def`: web3 calls are blocking, FastAPI runs them in
# its threadpool.
# -----------------------------------------------------------------------------

import logging
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .accounts import InMemoryAccountStore
from .audit import AuditLog, NullAuditLog
from .config import Settings, load_settings
from .membership import MembershipChecker
from .models import SessionValidateRequest
from .proof import validate_zkp_code
from .service import LoginError, ZkpLoginService
from .tokens import TokenExpired, TokenError, TokenIssuer, load_or_generate_key
from .verifier import ProofVerifier, VerificationRecorder

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> ZkpLoginService:
    audit = AuditLog(settings.AUDIT_DIR) if settings.AUDIT_ENABLED else NullAuditLog()
    recorder = VerificationRecorder(settings.ZKP_WRITE_MODE, audit=audit)

    return ZkpLoginService(
        verifier=ProofVerifier(settings, recorder=recorder),
        membership=MembershipChecker(settings),
        accounts=InMemoryAccountStore(),
        tokens=TokenIssuer(
            load_or_generate_key(settings.SESSION_SIGNING_KEY_B64),
            ttl_seconds=settings.SESSION_TTL_SECONDS,
        ),
        audit=audit,
        expose_error_details=settings.EXPOSE_ERROR_DETAILS,
    )


def create_app(settings: Optional[Settings] = None, service: Optional[ZkpLoginService] = None) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    service = service or build_service(settings)

    app = FastAPI(
        title="ZKP Club Auth",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.service = service

    @app.exception_handler(LoginError)
    def login_error_handler(request: Request, exc: LoginError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    def health():
        return {
            "ok": True,
            "club": settings.REQUIRED_CLUB_NAME,
            "write_enabled": settings.write_enabled,
        }

    @app.post("/api/auth/zkp/login")
    def zkp_login(request: Request, body: Optional[dict] = Body(default=None)):
        zkp_code: Any = (body or {}).get("zkpCode")

        result = service.login(
            zkp_code,
            request_ip=(request.client.host if request.client else None),
            user_agent=request.headers.get("user-agent"),
        )
        return result.to_dict()

    @app.post("/api/auth/zkp/validate")
    def zkp_validate(body: Optional[dict] = Body(default=None)):
        zkp_code = (body or {}).get("zkpCode")
        if not zkp_code:
            return JSONResponse(status_code=400, content={"ok": False, "message": "ZKP Code is required"})

        message = validate_zkp_code(zkp_code)
        if message:
            return JSONResponse(status_code=400, content={"ok": False, "message": message})
        return {"ok": True}

    @app.post("/api/auth/session/validate")
    def session_validate(body: SessionValidateRequest):
        token = body.token.strip()
        if not token:
            raise HTTPException(400, {"error": "bad_request", "message": "missing token"})

        try:
            return service.tokens.validate(token)
        except TokenExpired:
            raise HTTPException(410, {"error": "expired", "message": "token expired"})
        except TokenError as e:
            raise HTTPException(400, {"error": "bad_request", "message": str(e)})

    return app


app = create_app()
