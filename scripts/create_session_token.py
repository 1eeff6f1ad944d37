"""Mint a session JWT for local testing of the permissions API.

Usage:
    python -m scripts.create_session_token <user_id> <tenant_id> <role> [minutes]

Role is one of owner, manager, team_member, client. Requires SECRET_KEY
(read from .env at the project root).
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from fieldservice.domain.enums import Role
from fieldservice.infrastructure.security.jwt import create_access_token


def main() -> None:
    load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=True)
    if len(sys.argv) < 4:
        print(
            "Usage: python -m scripts.create_session_token <user_id> <tenant_id> <role> [minutes]",
            file=sys.stderr,
        )
        sys.exit(1)
    user_id, tenant_id, role = sys.argv[1:4]
    if role not in Role.values():
        print(f"Unknown role: {role} (expected one of {', '.join(Role.values())})", file=sys.stderr)
        sys.exit(1)
    expires = timedelta(minutes=int(sys.argv[4])) if len(sys.argv) > 4 else None
    print(create_access_token({"sub": user_id, "tenant_id": tenant_id, "role": role}, expires))


if __name__ == "__main__":
    main()
