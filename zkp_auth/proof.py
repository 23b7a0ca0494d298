"""
zkp_auth/proof.py

Proof payload parsing.

Two textual encodings are accepted for a Groth16-style proof:

1) JSON object:
   {"a": ["..", ".."], "b": [["..", ".."], ["..", ".."]], "c": ["..", ".."], "input": [".."]}

2) Nine comma-separated decimal values, in this order:
   a0, a1, b00, b01, b10, b11, c0, c1, input0

Parsing is pure and performs no network access, so the same rules back the
login form's early validation and the authoritative server-side check.
Numeric conversion for the contract call happens in to_contract_args().
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


INVALID_JSON = "INVALID_JSON"
INVALID_ZKP_FORMAT = "INVALID_ZKP_FORMAT"
INVALID_ZKP_CODE = "INVALID_ZKP_CODE"

# Messages shown by the login form for each parse failure
FORM_MESSAGES = {
    INVALID_JSON: "Invalid JSON format",
    INVALID_ZKP_FORMAT: "Invalid ZKP Code format",
    INVALID_ZKP_CODE: "ZKP Code must have exactly 9 comma-separated values",
}

REQUIRED_FIELDS = ("a", "b", "c", "input")
FLAT_VALUE_COUNT = 9
UINT256_MAX = 2**256 - 1

# zero-width space/joiners and BOM, common in copy-pasted proofs
_INVISIBLE_RE = re.compile(r"[\u200b-\u200d\ufeff]")
_COMMA_RE = re.compile(r"\s*,\s*")
_DECIMAL_RE = re.compile(r"[0-9]+")


class ZkpError(Exception):
    """Malformed proof input. `code` is one of the INVALID_* constants."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or FORM_MESSAGES.get(code, code)
        super().__init__(self.message)


@dataclass
class ProofPayload:
    a: List[Any]
    b: List[Any]
    c: List[Any]
    input: List[Any]

    def as_dict(self) -> Dict[str, Any]:
        return {"a": self.a, "b": self.b, "c": self.c, "input": self.input}

    @property
    def public_input(self) -> str:
        """First public signal as its original decimal string."""
        return str(self.input[0])


# -----------------------------------------------------------------------------
# Tagged proof source
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class RawProof:
    text: str


@dataclass(frozen=True)
class StructuredProof:
    fields: Mapping[str, Any] = field(default_factory=dict)


ProofSource = Union[RawProof, StructuredProof]


def as_proof_source(value: Any) -> ProofSource:
    """Tag a request value (text or already-decoded object) for the parser."""
    if isinstance(value, (RawProof, StructuredProof)):
        return value
    if isinstance(value, ProofPayload):
        return StructuredProof(value.as_dict())
    if isinstance(value, str):
        return RawProof(value)
    if isinstance(value, Mapping):
        return StructuredProof(dict(value))
    raise ZkpError(INVALID_ZKP_FORMAT)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
def _normalize_scalar(value: Any) -> Any:
    # JSON numbers become decimal strings so both encodings compare equal
    if isinstance(value, list):
        return [_normalize_scalar(v) for v in value]
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _from_fields(fields: Any) -> ProofPayload:
    if not isinstance(fields, Mapping):
        raise ZkpError(INVALID_ZKP_FORMAT)
    for k in REQUIRED_FIELDS:
        if not fields.get(k):
            raise ZkpError(INVALID_ZKP_FORMAT)
    return ProofPayload(
        a=_normalize_scalar(fields["a"]),
        b=_normalize_scalar(fields["b"]),
        c=_normalize_scalar(fields["c"]),
        input=_normalize_scalar(fields["input"]),
    )


def _from_text(text: str) -> ProofPayload:
    s = _INVISIBLE_RE.sub("", text).strip()

    if s.startswith("{"):
        try:
            obj = json.loads(s)
        except ValueError:
            raise ZkpError(INVALID_JSON)
        return _from_fields(obj)

    parts = [p.strip() for p in _COMMA_RE.split(s)]
    if len(parts) != FLAT_VALUE_COUNT:
        raise ZkpError(INVALID_ZKP_CODE)

    return ProofPayload(
        a=[parts[0], parts[1]],
        b=[[parts[2], parts[3]], [parts[4], parts[5]]],
        c=[parts[6], parts[7]],
        input=[parts[8]],
    )


def parse_zkp_code(source: ProofSource) -> ProofPayload:
    """
    Normalize a proof source into a ProofPayload.

    Raises ZkpError with:
      - INVALID_JSON       : text starts with '{' but is not valid JSON
      - INVALID_ZKP_FORMAT : object without truthy a/b/c/input
      - INVALID_ZKP_CODE   : comma form without exactly 9 values
    """
    if isinstance(source, RawProof):
        return _from_text(source.text)
    if isinstance(source, StructuredProof):
        return _from_fields(source.fields)
    raise ZkpError(INVALID_ZKP_FORMAT)


def validate_zkp_code(value: Any) -> Optional[str]:
    """Form-level check; returns the message to display or None when valid."""
    try:
        parse_zkp_code(as_proof_source(value))
    except ZkpError as e:
        return FORM_MESSAGES.get(e.code, e.message)
    return None


# -----------------------------------------------------------------------------
# Contract arguments
# -----------------------------------------------------------------------------
def _to_uint256(value: Any) -> int:
    if isinstance(value, bool):
        raise ZkpError(INVALID_ZKP_CODE, "proof values must be decimal integers")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str) and _DECIMAL_RE.fullmatch(value.strip()):
        n = int(value.strip(), 10)
    else:
        raise ZkpError(INVALID_ZKP_CODE, f"proof value is not a decimal integer: {str(value)[:80]!r}")
    if n < 0 or n > UINT256_MAX:
        raise ZkpError(INVALID_ZKP_CODE, "proof value out of uint256 range")
    return n


def _pair(value: Any, name: str) -> List[int]:
    if not isinstance(value, list) or len(value) != 2:
        raise ZkpError(INVALID_ZKP_CODE, f"'{name}' must hold exactly 2 values")
    return [_to_uint256(v) for v in value]


def to_contract_args(payload: ProofPayload) -> Tuple[List[int], List[List[int]], List[int], List[int]]:
    """Convert a payload into verifyProof(uint256[2], uint256[2][2], uint256[2], uint256[1]) args."""
    a = _pair(payload.a, "a")

    if not isinstance(payload.b, list) or len(payload.b) != 2:
        raise ZkpError(INVALID_ZKP_CODE, "'b' must be a 2x2 matrix")
    b = [_pair(row, "b") for row in payload.b]

    c = _pair(payload.c, "c")

    if not isinstance(payload.input, list) or len(payload.input) != 1:
        raise ZkpError(INVALID_ZKP_CODE, "'input' must hold exactly 1 value")
    inp = [_to_uint256(payload.input[0])]

    return a, b, c, inp
