from sqlalchemy import Boolean, Column, Integer, String, true
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Tenant(Base):
    __tablename__ = "tenants"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    member_id = Column(String, unique=True, nullable=False, index=True)
    webhook_url = Column(String, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True, server_default=true())

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} member_id={self.member_id!r} enabled={self.enabled}>"
