"""Alert rule data models.

Rules as stored, the alerts they produce, per-rule results and the
summary of an evaluation pass.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional
import uuid

from lotwatch.alerts.config import (
    ALERT_CATEGORIES,
    ONE_SHOT_TYPES,
    AlertType,
    NotificationCategory,
    RuleOutcome,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class AlertRule:
    """A user-defined alert rule.

    Attributes:
        rule_id: Unique id.
        owner_id: Owning user.
        alert_type: One of AlertType.
        symbol: Target symbol, for symbol-scoped types.
        target_value: Target price or percentage, depending on type.
        direction: "above"/"below" for price targets.
        configuration: Free-form, type-specific settings.
        active: Inactive rules are never evaluated.
        last_triggered_at: Time of the most recent trigger.
        trigger_count: Number of triggers so far.
        version: Optimistic-concurrency counter, bumped on every write.
    """
    owner_id: str
    alert_type: AlertType
    rule_id: str = field(default_factory=_new_id)
    symbol: Optional[str] = None
    target_value: Optional[float] = None
    direction: Optional[str] = None
    configuration: dict[str, Any] = field(default_factory=dict)
    active: bool = True
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    version: int = 0
    name: str = ""

    def __post_init__(self) -> None:
        self.last_triggered_at = _parse_datetime(self.last_triggered_at)

    @property
    def is_one_shot(self) -> bool:
        return self.alert_type in ONE_SHOT_TYPES

    @property
    def category(self) -> NotificationCategory:
        return ALERT_CATEGORIES[self.alert_type]

    def copy(self) -> "AlertRule":
        return replace(self, configuration=dict(self.configuration))

    def triggered(self, at: datetime) -> "AlertRule":
        """Return the state after a trigger at ``at``."""
        return replace(
            self,
            configuration=dict(self.configuration),
            active=False if self.is_one_shot else self.active,
            last_triggered_at=at,
            trigger_count=self.trigger_count + 1,
            version=self.version + 1,
        )

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "owner_id": self.owner_id,
            "alert_type": self.alert_type.value,
            "name": self.name,
            "symbol": self.symbol,
            "target_value": self.target_value,
            "direction": self.direction,
            "configuration": dict(self.configuration),
            "active": self.active,
            "last_triggered_at": self.last_triggered_at.isoformat() if self.last_triggered_at else None,
            "trigger_count": self.trigger_count,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlertRule":
        """Build a rule from a plain mapping (JSON data files, SQL rows).

        ``alert_type`` must be a known type; the remaining fields are
        validated when the rule is evaluated.
        """
        target = data.get("target_value")
        return cls(
            rule_id=str(data.get("rule_id") or data.get("id") or _new_id()),
            owner_id=str(data["owner_id"]),
            alert_type=AlertType(data.get("alert_type") or data.get("type")),
            name=data.get("name") or "",
            symbol=data.get("symbol") or None,
            target_value=None if target is None else target,
            direction=data.get("direction") or None,
            configuration=dict(data.get("configuration") or {}),
            active=bool(data.get("active", True)),
            last_triggered_at=_parse_datetime(data.get("last_triggered_at")),
            trigger_count=int(data.get("trigger_count", 0)),
            version=int(data.get("version", 0)),
        )


@dataclass
class TriggeredAlert:
    """Notification record created once per trigger."""
    rule_id: str
    owner_id: str
    alert_type: AlertType
    title: str
    message: str
    category: NotificationCategory
    payload: dict[str, Any] = field(default_factory=dict)
    alert_id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "rule_id": self.rule_id,
            "owner_id": self.owner_id,
            "type": self.alert_type.value,
            "title": self.title,
            "message": self.message,
            "category": self.category.value,
            "payload": dict(self.payload),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RuleResult:
    """Outcome of one rule in one pass."""
    rule_id: str
    owner_id: str = ""
    alert_type: Optional[AlertType] = None
    outcome: RuleOutcome = RuleOutcome.NOT_TRIGGERED
    error_code: Optional[str] = None
    error: Optional[str] = None
    delivered: Optional[bool] = None
    alert: Optional[TriggeredAlert] = None
    processed_at: datetime = field(default_factory=_utc_now)

    @property
    def triggered(self) -> bool:
        return self.outcome == RuleOutcome.TRIGGERED

    def to_dict(self) -> dict:
        data = {
            "rule_id": self.rule_id,
            "owner_id": self.owner_id,
            "type": self.alert_type.value if self.alert_type else None,
            "outcome": self.outcome.value,
            "triggered": self.triggered,
            "processed_at": self.processed_at.isoformat(),
        }
        if self.error_code:
            data["error_code"] = self.error_code
            data["error"] = self.error
        if self.delivered is not None:
            data["delivered"] = self.delivered
        return data


@dataclass
class PassSummary:
    """Summary of one evaluation pass."""
    pass_id: str = field(default_factory=_new_id)
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None
    results: list[RuleResult] = field(default_factory=list)
    skipped: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    price_cache: dict[str, int] = field(default_factory=dict)
    snapshot_builds: int = 0

    def _count(self, outcome: RuleOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def total_processed(self) -> int:
        return sum(1 for r in self.results if r.outcome != RuleOutcome.CANCELLED)

    @property
    def triggered_count(self) -> int:
        return self._count(RuleOutcome.TRIGGERED)

    @property
    def failed_count(self) -> int:
        return self._count(RuleOutcome.FAILED)

    @property
    def conflict_count(self) -> int:
        return self._count(RuleOutcome.CONFLICT)

    @property
    def cancelled_count(self) -> int:
        return self._count(RuleOutcome.CANCELLED)

    @property
    def triggered_alerts(self) -> list[TriggeredAlert]:
        return [r.alert for r in self.results if r.alert is not None]

    def result_for(self, rule_id: str) -> Optional[RuleResult]:
        for result in self.results:
            if result.rule_id == rule_id:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "pass_id": self.pass_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "error": self.error,
            "total_processed": self.total_processed,
            "triggered_count": self.triggered_count,
            "failed_count": self.failed_count,
            "conflict_count": self.conflict_count,
            "alerts": [r.to_dict() for r in self.results],
            "triggered_alerts": [a.to_dict() for a in self.triggered_alerts],
            "price_cache": dict(self.price_cache),
            "snapshot_builds": self.snapshot_builds,
        }
