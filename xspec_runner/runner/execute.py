"""Execution of compiled XSpecs with their output fanned out to the report sinks."""

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from xspec_runner.exceptions import TransformError
from xspec_runner.logging_config import get_logger
from xspec_runner.runner.compile import CompiledXSpec
from xspec_runner.runner.results import ResultsCollector
from xspec_runner.runner.sinks import HtmlReportSink, TeeHandler, XmlArchiveSink
from xspec_runner.transform import XSpecProgram, load_artifact

logger = get_logger("runner")


@dataclass
class ExecutionResult:
    xml_report: Path
    html_report: Path
    aborted: bool = False
    errors: List[str] = field(default_factory=list)


def execute_xspec(
    ctx,
    compiled: CompiledXSpec,
    collector: ResultsCollector,
    loader: Optional[Callable[[Path], XSpecProgram]] = None,
) -> ExecutionResult:
    """Run a compiled XSpec once, feeding its report to three sinks.

    The collector counts results, the XML archive keeps the raw report and the
    HTML sink renders it with the reporter stylesheet. When the execution
    aborts, the sinks keep what was produced up to that point; the difference
    to the declared test count shows up as missed tests.

    Returns:
        ExecutionResult with the report paths, the abort flag and any errors
        from the execution or from individual sinks.
    """
    keep_partial = ctx.config.keep_partial_reports
    result = ExecutionResult(
        xml_report=ctx.result_path(compiled.xspec, "xml"),
        html_report=ctx.result_path(compiled.xspec, "html"),
    )
    tee = TeeHandler(
        [
            collector,
            XmlArchiveSink(result.xml_report, keep_partial=keep_partial),
            HtmlReportSink(ctx.programs.reporter, result.html_report, keep_partial=keep_partial),
        ]
    )

    loader = loader or partial(load_artifact, processor=ctx.programs.processor)
    try:
        program = loader(compiled.path)
        logger.info(f"Executing XSpec: {compiled}", extra={"xspec": str(compiled.xspec)})
        program.run(tee)
    except TransformError as e:
        result.aborted = True
        result.errors.append(str(e))
        logger.error(
            f"Execution of {compiled.xspec.name} aborted: {e}",
            extra={"xspec": str(compiled.xspec), "error": str(e)},
        )
    finally:
        tee.close(aborted=result.aborted)

    result.errors.extend(str(err) for err in tee.errors)
    return result
