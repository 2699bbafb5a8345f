from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from lina.db.base import Base


class User(Base):
    __tablename__ = "users"

    identity = Column(String(64), primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=True)  # normalized (trim + lowercase)
    used_count = Column(Integer, nullable=False, default=0)  # free questions consumed (lifetime)
    subscription_expiry = Column(DateTime(timezone=True), nullable=True)  # premium until this instant
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
