"""Configuration management with environment variable loading."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from xspec_runner.exceptions import ConfigurationError


def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = Path(__file__).parent.parent / ".env"
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    if key not in os.environ:  # Don't override existing env vars
                        os.environ[key] = value


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(name, default)


def get_bool_env(name: str, default: bool = False) -> bool:
    """Interpret an environment variable as a boolean flag."""
    value = get_env(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Load .env file on import
load_env_file()

XSPEC_NS = "http://www.jenitennison.com/xslt/xspec"
"""str: Namespace of XSpec descriptions and XSpec reports."""

XSPEC_SUFFIX = ".xspec"
"""str: File name suffix identifying XSpec test files."""

MAIN_TEMPLATE = "main"
"""str: Local name of the entry-point template in compiled XSpecs (x:main)."""

TEST_KINDS = ("xslt", "xquery", "schematron")
"""tuple: Kinds of XSpec descriptions, detected from the x:description attributes."""

DEFAULT_COMPILER = "xspec/src/compiler/generate-xspec-tests.xsl"
DEFAULT_REPORTER = "xspec/src/reporter/format-xspec-report.xsl"
DEFAULT_TEST_DIR = "src/test/xspec"
DEFAULT_REPORT_DIR = "target/xspec-reports"

COMPILED_DIR_NAME = "xslt"
"""str: Sub directory of the report dir receiving the compiled test stylesheets."""


def parse_pending_kinds(value: Optional[str]) -> FrozenSet[str]:
    """Parse a comma separated list of test kinds (or ``all``)."""
    if not value:
        return frozenset()
    kinds = {k.strip().lower() for k in value.split(",") if k.strip()}
    if "all" in kinds:
        return frozenset(TEST_KINDS)
    unknown = kinds.difference(TEST_KINDS)
    if unknown:
        raise ConfigurationError(
            f"Unknown test kind(s) {sorted(unknown)}; expected one of {TEST_KINDS} or 'all'"
        )
    return frozenset(kinds)


@dataclass
class XSpecConfig:
    """Options recognised by the runner."""

    skip_tests: bool = False
    compiler: str = DEFAULT_COMPILER
    reporter: str = DEFAULT_REPORTER
    test_dir: Path = Path(DEFAULT_TEST_DIR)
    report_dir: Path = Path(DEFAULT_REPORT_DIR)
    skip_pending: FrozenSet[str] = field(default_factory=frozenset)
    keep_partial_reports: bool = True

    def __post_init__(self):
        self.test_dir = Path(self.test_dir)
        self.report_dir = Path(self.report_dir)
        self.skip_pending = frozenset(self.skip_pending)

    @property
    def pending_policy(self) -> Dict[str, bool]:
        """Map of test kind -> whether pending assertions are elided."""
        return {kind: kind in self.skip_pending for kind in TEST_KINDS}

    @property
    def compiled_dir(self) -> Path:
        return self.report_dir / COMPILED_DIR_NAME

    @classmethod
    def from_env(cls, **overrides) -> "XSpecConfig":
        """Build a config from XSPEC_* environment variables.

        Keyword arguments that are not None take precedence over the environment.
        """
        values = dict(
            skip_tests=get_bool_env("XSPEC_SKIP_TESTS", False),
            compiler=get_env("XSPEC_COMPILER", DEFAULT_COMPILER),
            reporter=get_env("XSPEC_REPORTER", DEFAULT_REPORTER),
            test_dir=get_env("XSPEC_TEST_DIR", DEFAULT_TEST_DIR),
            report_dir=get_env("XSPEC_REPORT_DIR", DEFAULT_REPORT_DIR),
            skip_pending=parse_pending_kinds(get_env("XSPEC_SKIP_PENDING")),
            keep_partial_reports=get_bool_env("XSPEC_KEEP_PARTIAL_REPORTS", True),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
