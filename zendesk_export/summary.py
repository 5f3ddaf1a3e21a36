# zendesk_export/summary.py
import datetime as dt
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import humanize

OK = "ok"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class StageResult:
    name: str
    status: str = OK
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    bytes: int = 0
    seconds: float = 0.0
    error: Optional[str] = None

    def describe(self) -> str:
        parts = [f"exported={self.exported}", f"skipped={self.skipped}", f"failed={self.failed}"]
        if self.bytes:
            parts.append(f"size={humanize.naturalsize(self.bytes, binary=False)}")
        parts.append(f"took={humanize.naturaldelta(dt.timedelta(seconds=self.seconds))}")
        return f"{self.name}: {self.status} | " + ", ".join(parts)


@dataclass
class RunSummary:
    started_at: str
    stages: List[StageResult] = field(default_factory=list)
    finished_at: Optional[str] = None
    completed: bool = False

    @property
    def failed_stages(self) -> List[str]:
        return [s.name for s in self.stages if s.status == FAILED]

    def totals(self) -> Dict[str, int]:
        return {
            "exported": sum(s.exported for s in self.stages),
            "skipped": sum(s.skipped for s in self.stages),
            "failed": sum(s.failed for s in self.stages),
            "bytes": sum(s.bytes for s in self.stages),
        }

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["totals"] = self.totals()
        return d

    def log(self) -> None:
        for s in self.stages:
            level = logging.ERROR if s.status == FAILED else logging.INFO
            logging.log(level, "  %s", s.describe())
        t = self.totals()
        logging.info("Run %s: %d exported, %d skipped, %d failed, %s downloaded",
                     "complete" if self.completed else "aborted",
                     t["exported"], t["skipped"], t["failed"],
                     humanize.naturalsize(t["bytes"], binary=False))
