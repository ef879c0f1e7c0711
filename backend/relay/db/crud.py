import logging
from typing import Callable, Optional

from relay.db import models, schemas
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def get_tenant_by_member_id(db: Session, member_id: str) -> Optional[models.Tenant]:
    return db.query(models.Tenant).filter_by(member_id=member_id).first()


def upsert_tenant(db: Session, data: schemas.TenantUpsert) -> models.Tenant:
    tenant = get_tenant_by_member_id(db, data.member_id)
    if tenant:
        tenant.name = data.name
        tenant.webhook_url = data.webhook_url
        tenant.enabled = data.enabled
    else:
        tenant = models.Tenant(**data.model_dump())
        db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


class SqlTenantDirectory:
    """Tenant lookup backed by the ``tenants`` table.

    Opens a short-lived session per lookup from the pooled session factory,
    unless a session is handed in; that one is left open for its owner.
    Database errors are not caught here.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        session: Optional[Session] = None,
    ):
        self._session_factory = session_factory
        self._session = session

    def find_by_member_id(self, member_id: str) -> Optional[schemas.TenantRecord]:
        member_id = (member_id or "").strip()
        if not member_id:
            return None

        if self._session is None:
            db = self._session_factory()
            should_close = True
        else:
            db = self._session
            should_close = False

        try:
            tenant = get_tenant_by_member_id(db, member_id)
            logger.debug(f"Tenant lookup member_id={member_id}: {tenant}")
            if tenant is None:
                return None
            return schemas.TenantRecord.model_validate(tenant)
        finally:
            if should_close:
                db.close()
