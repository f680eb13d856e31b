"""Evaluation Pass Context.

Binds the pass id, and within a pass the rule id and owner id, to every
log record emitted by the current thread of execution. Worker threads
enter their own RuleContext since contextvars do not flow into a
ThreadPoolExecutor by default.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_pass_id_var: ContextVar[str] = ContextVar("pass_id", default="")
_rule_id_var: ContextVar[str] = ContextVar("rule_id", default="")
_owner_id_var: ContextVar[str] = ContextVar("owner_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_pass_id() -> str:
    """Generate a short unique id for an evaluation pass."""
    return uuid.uuid4().hex[:16]


def get_pass_id() -> str:
    return _pass_id_var.get()


def get_rule_id() -> str:
    return _rule_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all bound context values as a dictionary for log binding."""
    ctx: dict[str, Any] = {}
    for key, var in (
        ("pass_id", _pass_id_var),
        ("rule_id", _rule_id_var),
        ("owner_id", _owner_id_var),
    ):
        value = var.get()
        if value:
            ctx[key] = value
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class PassContext:
    """Context manager binding a pass id to all log entries.

    Example:
        with PassContext() as ctx:
            logger.info("pass started")  # includes pass_id
    """

    pass_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.pass_id:
            self.pass_id = generate_pass_id()

    def __enter__(self) -> "PassContext":
        self._tokens = [
            (_pass_id_var, _pass_id_var.set(self.pass_id)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the pass started."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000


class RuleContext:
    """Binds pass, rule and owner ids while a single rule is evaluated."""

    def __init__(self, rule_id: str, owner_id: str = "", pass_id: str = ""):
        self.rule_id = rule_id
        self.owner_id = owner_id
        self.pass_id = pass_id
        self._tokens: list = []

    def __enter__(self) -> "RuleContext":
        self._tokens = [
            (_rule_id_var, _rule_id_var.set(self.rule_id)),
            (_owner_id_var, _owner_id_var.set(self.owner_id)),
        ]
        if self.pass_id:
            self._tokens.append((_pass_id_var, _pass_id_var.set(self.pass_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
