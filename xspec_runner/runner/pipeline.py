"""Per-XSpec compile/execute/reconcile loop and the run entry point."""

import time
from pathlib import Path
from typing import List, Optional

from xspec_runner.config import XSpecConfig
from xspec_runner.context import RunContext
from xspec_runner.exceptions import CompilationError, XSpecFailuresError
from xspec_runner.logging_config import get_logger
from xspec_runner.report.generate import generate
from xspec_runner.resources import ResourceResolver
from xspec_runner.runner.aggregate import RunOutcome, RunSummary, write_outputs
from xspec_runner.runner.compile import compile_xspec
from xspec_runner.runner.discover import find_xspecs
from xspec_runner.runner.execute import execute_xspec
from xspec_runner.runner.results import ResultsCollector
from xspec_runner.transform import load_programs

logger = get_logger("runner")


def process_xspec(ctx: RunContext, xspec: Path) -> RunOutcome:
    """Compile, execute and reconcile a single XSpec.

    Errors are converted into a failed outcome, they never escape this function.
    """
    logger.info(f"Processing XSpec: {xspec.resolve()}", extra={"xspec": str(xspec)})
    start_time = time.time()

    try:
        compiled = compile_xspec(ctx, xspec)
    except CompilationError as e:
        logger.error(str(e), extra={"xspec": str(xspec), "error": str(e)})
        return RunOutcome.not_compiled(xspec, str(e))
    except Exception as e:
        logger.error(
            f"Unexpected error compiling {xspec}: {e}",
            extra={"xspec": str(xspec), "error": str(e)},
            exc_info=True,
        )
        return RunOutcome.not_compiled(xspec, f"Unexpected error: {e}")

    collector = ResultsCollector()
    try:
        execution = execute_xspec(ctx, compiled, collector)
        errors = tuple(execution.errors)
    except Exception as e:
        logger.error(
            f"Unexpected error executing {compiled}: {e}",
            extra={"xspec": str(xspec), "error": str(e)},
            exc_info=True,
        )
        errors = (f"Unexpected error: {e}",)
    tally = collector.finalize()

    outcome = RunOutcome(
        xspec=xspec,
        declared=compiled.tests,
        tally=tally,
        pending=compiled.pending,
        errors=errors,
    )
    extra = {
        "xspec": str(xspec),
        "declared": outcome.declared,
        "passed": outcome.passed,
        "failed": outcome.failed,
        "missed": outcome.missed,
        "execution_time": time.time() - start_time,
    }
    if outcome.success:
        logger.info(outcome.summary_line(), extra=extra)
    else:
        logger.error(outcome.summary_line(), extra=extra)
    if outcome.pending:
        logger.info(f"{xspec.name}: {outcome.pending} pending tests were not compiled")
    return outcome


def run_xspecs(ctx: RunContext, xspecs: Optional[List[Path]] = None) -> RunSummary:
    """Process XSpecs one after the other; discovers them when none are given."""
    if xspecs is None:
        logger.debug(f"Looking for XSpecs in: {ctx.config.test_dir}")
        xspecs = find_xspecs(ctx.config.test_dir)
    logger.info(f"Found {len(xspecs)} XSpecs...", extra={"xspec_count": len(xspecs)})

    summary = RunSummary()
    reports = {}
    for xspec in xspecs:
        report = ctx.result_path(xspec, "xml")
        if report in reports:
            logger.warning(
                f"{xspec} writes the same reports as {reports[report]}; "
                f"the reports of the earlier XSpec are overwritten",
                extra={"xspec": str(xspec), "report": str(report)},
            )
        reports[report] = xspec
        summary.outcomes.append(process_xspec(ctx, xspec))
    return summary


def _write_reports(report_dir: Path, summary: RunSummary) -> None:
    try:
        write_outputs(report_dir, summary)
        generate(summary, report_dir)
    except OSError as e:
        logger.warning(
            f"Unable to write run summary to {report_dir}: {e}",
            extra={"report_dir": str(report_dir), "error": str(e)},
        )


def run(config: XSpecConfig, resolver: Optional[ResourceResolver] = None) -> RunSummary:
    """Run every XSpec below ``config.test_dir``.

    Raises:
        ProgramLoadError: If the compiler or reporter stylesheet is unusable.
        ConfigurationError: If the test directory cannot be read.
    """
    if config.skip_tests:
        logger.info("'skip_tests' is set... skipping XSpec tests!")
        return RunSummary(skipped=True)

    programs = load_programs(config, resolver)
    ctx = RunContext(config=config, programs=programs)
    xspecs = find_xspecs(config.test_dir)

    try:
        config.compiled_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Unable to create report directory {config.compiled_dir}: {e}")

    summary = run_xspecs(ctx, xspecs)
    _write_reports(config.report_dir, summary)
    return summary


def check_summary(summary: RunSummary) -> None:
    """Raise once for the whole run when any XSpec failed or had missed tests."""
    if not summary.success:
        raise XSpecFailuresError(summary.message(), summary)
