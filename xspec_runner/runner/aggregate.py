import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Tuple

from xspec_runner.runner.results import ResultTally


@dataclass(frozen=True)
class RunOutcome:
    """Reconciled result of one XSpec.

    ``missed`` is derived: tests the XSpec declares but the execution never
    reported, which happens when the transformation aborts part way.
    """

    xspec: Path
    declared: int
    tally: ResultTally = field(default_factory=ResultTally)
    pending: int = 0
    compiled: bool = True
    errors: Tuple[str, ...] = ()

    @classmethod
    def not_compiled(cls, xspec: Path, error: str) -> "RunOutcome":
        return cls(xspec=xspec, declared=0, compiled=False, errors=(error,))

    @property
    def name(self) -> str:
        return self.xspec.name

    @property
    def passed(self) -> int:
        return self.tally.passed

    @property
    def failed(self) -> int:
        return self.tally.failed

    @property
    def missed(self) -> int:
        return self.declared - self.tally.total

    @property
    def success(self) -> bool:
        return self.compiled and self.failed == 0 and self.missed == 0 and not self.errors

    def summary_line(self) -> str:
        if not self.compiled:
            return f"{self.name} could not be compiled: {self.errors[0]}"
        return (
            f"{self.name} results [Total/Passed/Failed/Missed] = "
            f"[{self.declared}/{self.passed}/{self.failed}/{self.missed}]"
        )

    def to_dict(self) -> Dict:
        return {
            "xspec": str(self.xspec),
            "name": self.name,
            "compiled": self.compiled,
            "declared": self.declared,
            "passed": self.passed,
            "failed": self.failed,
            "missed": self.missed,
            "pending": self.tally.pending,
            "pending_skipped": self.pending,
            "success": self.success,
            "errors": list(self.errors),
        }


@dataclass
class RunSummary:
    """Outcomes of all XSpecs of one run."""

    outcomes: List[RunOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def compiled_count(self) -> int:
        return sum(1 for o in self.outcomes if o.compiled)

    @property
    def failures(self) -> List[RunOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        if self.skipped:
            return True
        # a run in which nothing could be compiled has not tested anything
        return self.compiled_count > 0 and not self.failures

    def totals(self) -> Dict[str, int]:
        return {
            "declared": sum(o.declared for o in self.outcomes),
            "passed": sum(o.passed for o in self.outcomes),
            "failed": sum(o.failed for o in self.outcomes),
            "missed": sum(o.missed for o in self.outcomes),
        }

    def message(self) -> str:
        """Human readable verdict with one line per failing XSpec."""
        if self.success:
            return f"All {len(self.outcomes)} XSpecs passed"
        if self.compiled_count == 0:
            lines = ["No XSpec could be compiled and executed!"]
        else:
            lines = ["Some XSpec tests failed or were missed!"]
        lines.extend(f"  {o.summary_line()}" for o in self.failures)
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "totals": self.totals(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def write_outputs(report_dir, summary: RunSummary) -> str:
    """Write ``summary.json`` into the report directory and return its path."""
    os.makedirs(report_dir, exist_ok=True)
    path = os.path.join(report_dir, "summary.json")
    data = summary.to_dict()
    data["generated_at"] = datetime.now().isoformat()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    return path
