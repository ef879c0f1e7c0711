#!/usr/bin/env python
"""
Seed script — creates or updates a tenant for a Bitrix24 portal.

Usage:
    python seed.py <member_id> <webhook_url> [name] [--disabled]
"""
import sys

from relay.db import crud, schemas
from relay.db.session import SessionLocal


def main(argv: list[str]) -> int:
    disabled = "--disabled" in argv
    args = [a for a in argv if a != "--disabled"]
    if len(args) not in (2, 3):
        print(__doc__)
        return 1

    member_id, webhook_url = args[0], args[1]
    name = args[2] if len(args) == 3 else member_id
    if not schemas.is_absolute_http_url(webhook_url):
        print(f"Error: webhook URL must be an absolute http(s) URL: {webhook_url}")
        return 1

    db = SessionLocal()
    try:
        tenant = crud.upsert_tenant(
            db,
            schemas.TenantUpsert(
                name=name,
                member_id=member_id,
                webhook_url=webhook_url,
                enabled=not disabled,
            ),
        )
    finally:
        db.close()

    print("=== Tenant Seeded ===")
    print(f"Tenant name : {tenant.name}")
    print(f"Tenant id   : {tenant.id}")
    print(f"Member id   : {tenant.member_id}")
    print(f"Webhook URL : {tenant.webhook_url}")
    print(f"Enabled     : {tenant.enabled}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
