"""Runner for XSpec test suites: compiles XSpecs, executes them and reports
pass/fail/missed counts with XML and HTML reports."""

__version__ = "0.1.0"

# Core components
from xspec_runner.config import XSpecConfig
from xspec_runner.context import RunContext
from xspec_runner.transform import Programs, load_programs
from xspec_runner.runner.aggregate import RunOutcome, RunSummary
from xspec_runner.runner.results import ResultTally, ResultsCollector
from xspec_runner.runner.pipeline import run, run_xspecs, process_xspec, check_summary

__all__ = [
    # Version
    "__version__",
    # Core
    "XSpecConfig",
    "RunContext",
    "Programs",
    "load_programs",
    # Results
    "RunOutcome",
    "RunSummary",
    "ResultTally",
    "ResultsCollector",
    # Execution
    "run",
    "run_xspecs",
    "process_xspec",
    "check_summary",
]
