"""SQLAlchemy ORM models.

Tables:
- alert_rules: user-defined alert rules and their trigger state
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, func

from lotwatch.db.base import Base


class AlertRuleRow(Base):
    __tablename__ = "alert_rules"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False)
    alert_type = Column(String(32), nullable=False)
    name = Column(String(200), nullable=False, default="")
    symbol = Column(String(20))
    target_value = Column(Float)
    direction = Column(String(10))
    configuration = Column(JSON, nullable=False, default=dict)
    active = Column(Boolean, nullable=False, default=True)
    last_triggered_at = Column(DateTime(timezone=True))
    trigger_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_alert_rules_active", "active"),
        Index("ix_alert_rules_owner", "owner_id"),
    )
