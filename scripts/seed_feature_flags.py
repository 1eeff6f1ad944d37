"""Create the initial feature flag document for one or more tenants.

Tenants that already have a flag document are left untouched.

Usage:
    python -m scripts.seed_feature_flags <created_by_user_id> <tenant_id> [tenant_id ...]

Requires: DOCUMENT_BACKEND=firestore with FIREBASE_SERVICE_ACCOUNT_KEY or
FIREBASE_SERVICE_ACCOUNT_PATH (read from .env at the project root).
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from fieldservice.application.services.tenant_provisioning import (
    ensure_tenant_feature_flags,
)
from fieldservice.core.config import get_settings
from fieldservice.infrastructure.firebase.client import (
    close_firebase,
    get_firestore_client,
    init_firebase,
)
from fieldservice.infrastructure.firebase.document_store import FirestoreDocumentStore


def _load_env() -> None:
    """Load .env from project root so get_settings() sees FIREBASE_* when run as script."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=True)


async def main() -> None:
    _load_env()
    if len(sys.argv) < 3:
        print(
            "Usage: python -m scripts.seed_feature_flags <created_by_user_id> <tenant_id> [tenant_id ...]",
            file=sys.stderr,
        )
        sys.exit(1)
    created_by, tenant_ids = sys.argv[1], sys.argv[2:]

    if get_settings().document_backend != "firestore":
        print("DOCUMENT_BACKEND must be 'firestore' to seed flags", file=sys.stderr)
        sys.exit(1)
    if not init_firebase():
        print("Firestore not configured", file=sys.stderr)
        sys.exit(1)
    client = get_firestore_client()
    assert client is not None
    store = FirestoreDocumentStore(client)
    try:
        for tenant_id in tenant_ids:
            created = await ensure_tenant_feature_flags(store, tenant_id, created_by)
            status = "created" if created else "already present"
            print(f"Feature flags for tenant {tenant_id}: {status}")
    finally:
        await close_firebase()


if __name__ == "__main__":
    asyncio.run(main())
