"""Per-URL processing outcome shared by the scheduler, processor and aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import classify_error


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class OutcomeError:
    message: str
    kind: str
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.message, "kind": self.kind, "timestamp": self.timestamp}


@dataclass
class ProcessingOutcome:
    """Exactly one per accepted URL; ``error`` is set iff ``success`` is False."""

    url: str
    success: bool
    error: Optional[OutcomeError] = None
    warnings: List[str] = field(default_factory=list)
    artifacts: Dict[str, str] = field(default_factory=dict)
    violation_count: int = 0
    duration_ms: int = 0

    @classmethod
    def failure(cls, url: str, exc: BaseException, *, kind: Optional[str] = None, **kwargs: Any) -> "ProcessingOutcome":
        message = str(exc) or exc.__class__.__name__
        return cls(
            url=url,
            success=False,
            error=OutcomeError(message=message, kind=kind or classify_error(exc)),
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "success": self.success,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
            "artifacts": dict(self.artifacts),
            "violation_count": self.violation_count,
            "duration_ms": self.duration_ms,
        }


__all__ = ["OutcomeError", "ProcessingOutcome"]
