"""Execution context for XSpec runs."""

from dataclasses import dataclass
from pathlib import Path

from xspec_runner.config import XSpecConfig
from xspec_runner.transform import Programs


@dataclass(frozen=True)
class RunContext:
    """Run context: configuration plus the stylesheets loaded once for the run."""
    config: XSpecConfig
    programs: Programs

    @property
    def report_dir(self) -> Path:
        return self.config.report_dir

    def compiled_path(self, xspec: Path) -> Path:
        """``<report_dir>/xslt/<name>.xslt``"""
        return self.config.compiled_dir / f"{xspec.name}.xslt"

    def result_path(self, xspec: Path, extension: str) -> Path:
        """``<report_dir>/<name without .xspec>.<extension>``"""
        return self.report_dir / f"{xspec.name.replace('.xspec', '')}.{extension}"
