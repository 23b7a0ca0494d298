from pathlib import Path
from urllib.parse import urlparse

from eth_utils import is_address, to_checksum_address
from pydantic import field_validator
from pydantic_settings import BaseSettings


WRITE_MODES = ("sync", "background", "off")


class Settings(BaseSettings):
    # chain endpoint (Base mainnet)
    RPC_URL: str = "https://mainnet.base.org"
    CHAIN_ID: int = 8453

    # optional signer for the best-effort verification transaction
    ZKP_PRIVATE_KEY: str = ""
    ZKP_WRITE_MODE: str = "sync"

    # fixed deployment contracts
    PROOF_OF_OWNERSHIP_ADDRESS: str = "0x7587CA385f1e10c411638003dA0f1bd3C99b919e"
    CLUB_MANAGER_ADDRESS: str = "0xd4BAB0d82948955B09760F26F5EDd5E19F2Bee55"
    MEMBERSHIP_QUERY_ADDRESS: str = "0x2A152405afB201258D66919570BbD4625455a65f"

    # club gating the whole deployment
    REQUIRED_CLUB_NAME: str = "justhub"

    # session tokens
    SESSION_TTL_SECONDS: int = 900
    SESSION_SIGNING_KEY_B64: str = ""

    # audit log
    AUDIT_DIR: Path = Path("audit")
    AUDIT_ENABLED: bool = True

    EXPOSE_ERROR_DETAILS: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @field_validator("RPC_URL")
    @classmethod
    def normalize_rpc_url(cls, v: str) -> str:
        """
        RPC_URL must be an absolute http(s) URL.

        Whitespace and trailing slashes are stripped; path and query are kept
        because hosted providers put the project key there.
        """
        v = (v or "").strip().rstrip("/")
        p = urlparse(v)

        if p.scheme not in ("http", "https"):
            raise ValueError("RPC_URL must start with http:// or https://")

        if not p.hostname:
            raise ValueError("RPC_URL must include a hostname")

        return v

    @field_validator("ZKP_PRIVATE_KEY")
    @classmethod
    def strip_private_key(cls, v: str) -> str:
        # prefixing happens in the chain client provider
        return (v or "").strip()

    @field_validator("ZKP_WRITE_MODE")
    @classmethod
    def normalize_write_mode(cls, v: str) -> str:
        v = (v or "").strip().lower() or "sync"
        if v not in WRITE_MODES:
            raise ValueError(f"ZKP_WRITE_MODE must be one of {', '.join(WRITE_MODES)}")
        return v

    @field_validator(
        "PROOF_OF_OWNERSHIP_ADDRESS",
        "CLUB_MANAGER_ADDRESS",
        "MEMBERSHIP_QUERY_ADDRESS",
    )
    @classmethod
    def checksum_contract_address(cls, v: str) -> str:
        v = (v or "").strip()
        # checksum casing is recomputed, not trusted
        if not is_address(v.lower()):
            raise ValueError(f"invalid contract address: {v!r}")
        return to_checksum_address(v)

    @field_validator("REQUIRED_CLUB_NAME")
    @classmethod
    def normalize_club_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("REQUIRED_CLUB_NAME cannot be empty")
        return v

    @field_validator("AUDIT_ENABLED", "EXPOSE_ERROR_DETAILS", mode="before")
    @classmethod
    def normalize_flag(cls, v):
        # accept 0/1, "true"/"false" from env consistently
        if isinstance(v, bool):
            return v
        if isinstance(v, (int,)):
            return bool(v)
        if isinstance(v, str):
            return v.strip().lower() not in ("0", "false", "no", "off", "")
        return False

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "").strip().upper() or "INFO"

    @property
    def write_enabled(self) -> bool:
        return bool(self.ZKP_PRIVATE_KEY) and self.ZKP_WRITE_MODE != "off"


def load_settings(**overrides) -> Settings:
    """
    Build the process-wide settings object.

    Called once at start-up; the result is passed explicitly to every
    component constructor instead of being looked up as a module global.
    """
    return Settings(**overrides)
