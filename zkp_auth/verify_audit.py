"""
verify_audit.py: verify the login audit log written by zkp_auth.audit.

Checks:
- every line's prev_hash/hash chain (see audit.py)
- the state file holds the hash of the last line

Exit codes:
- 0: OK
- 1: Verification failed
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from .audit import GENESIS_HASH, LOG_NAME, STATE_NAME, verify_log_chain


def _last_hash(log_path: Path) -> Optional[str]:
    last = None
    with open(log_path, "rb") as f:
        for raw_line in f:
            if raw_line.strip():
                last = raw_line
    if last is None:
        return None
    return json.loads(last.decode("utf-8")).get("hash")


def verify_audit_dir(directory: Path) -> tuple[bool, str]:
    log_path = directory / LOG_NAME
    state_path = directory / STATE_NAME

    if not log_path.exists():
        return True, "no audit log yet"

    if not verify_log_chain(log_path):
        return False, f"hash chain broken: {log_path}"

    last = _last_hash(log_path) or GENESIS_HASH
    if state_path.exists():
        state_val = state_path.read_text(encoding="utf-8").strip()
        if state_val != last:
            return False, f"State mismatch: state={state_val} log_last={last}"

    return True, f"last_hash={last}"


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        description="Verify ZKP login audit log integrity (hash-chained JSONL)."
    )
    p.add_argument(
        "directory",
        type=Path,
        nargs="?",
        default=Path("audit"),
        help="Audit directory (AUDIT_DIR), default ./audit",
    )
    args = p.parse_args(argv)

    try:
        ok, message = verify_audit_dir(args.directory)
    except (OSError, ValueError) as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return 1

    if ok:
        print("OK")
        print(message)
        return 0

    print("FAIL", file=sys.stderr)
    print(message, file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
