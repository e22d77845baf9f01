from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class JobResult:
    """Structured outcome of one periodic job run."""

    job_name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str = "ok"  # ok | partial | failed
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "job_name": self.job_name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "status": self.status,
            "counts": dict(self.counts),
            "errors": list(self.errors),
        }
