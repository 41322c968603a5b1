"""Counting of test results in an XSpec report event stream."""

from dataclasses import asdict, dataclass
from enum import Enum

from xspec_runner.config import XSPEC_NS
from xspec_runner.exceptions import ResultAggregationError
from xspec_runner.runner.sinks import EventSink


@dataclass(frozen=True)
class ResultTally:
    """Observed results of one execution."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    pending: int = 0
    scenarios: int = 0

    def to_dict(self):
        return asdict(self)


class CollectorState(Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    FINALIZED = "finalized"


class ResultsCollector(EventSink):
    """Count ``x:test`` results while the report is being produced.

    ``x:scenario`` elements are containers and are counted separately; every
    ``x:test`` is one observed test, whatever its nesting depth. A test is
    passed when ``successful="true"``, pending when it only carries a
    ``pending`` attribute, and failed otherwise.
    """

    name = "results"

    def __init__(self):
        super().__init__()
        self.state = CollectorState.IDLE
        self._total = 0
        self._passed = 0
        self._failed = 0
        self._pending = 0
        self._scenarios = 0
        self._tally = None

    def _observe(self) -> None:
        if self.state is CollectorState.FINALIZED:
            raise ResultAggregationError("Results already finalized, no more events accepted")
        self.state = CollectorState.OBSERVING

    def startDocument(self):
        self._observe()

    def startElementNS(self, name, qname, attrs):
        self._observe()
        uri, local = name
        if uri != XSPEC_NS:
            return
        if local == "scenario":
            self._scenarios += 1
        elif local == "test":
            self._total += 1
            successful = attrs.get((None, "successful"))
            if successful == "true":
                self._passed += 1
            elif successful is None and (None, "pending") in attrs.keys():
                self._pending += 1
            else:
                self._failed += 1

    def endDocument(self):
        self.finalize()

    def close(self, aborted: bool = False) -> None:
        self.finalize()

    def finalize(self) -> ResultTally:
        """Freeze the counts; further calls return the same tally."""
        if self.state is not CollectorState.FINALIZED:
            self._tally = ResultTally(
                total=self._total,
                passed=self._passed,
                failed=self._failed,
                pending=self._pending,
                scenarios=self._scenarios,
            )
            self.state = CollectorState.FINALIZED
        return self._tally

    @property
    def tally(self) -> ResultTally:
        if self.state is not CollectorState.FINALIZED:
            raise ResultAggregationError(
                f"Results are not final while the collector is {self.state.value}"
            )
        return self._tally
