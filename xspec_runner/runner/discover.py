"""Discovery of XSpec files below a test directory."""

import os
from pathlib import Path
from typing import List, Union

from xspec_runner.config import XSPEC_SUFFIX
from xspec_runner.exceptions import ConfigurationError


def find_xspecs(test_dir: Union[str, Path], suffix: str = XSPEC_SUFFIX) -> List[Path]:
    """Recursively find files whose name ends with ``suffix`` under ``test_dir``.

    The result is sorted so that repeated runs enumerate XSpecs in the same order.

    Raises:
        ConfigurationError: If ``test_dir`` is not a readable directory.
    """
    root = Path(test_dir)
    if not root.is_dir():
        raise ConfigurationError(f"XSpec test directory does not exist: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ConfigurationError(f"XSpec test directory is not readable: {root}")

    def _onerror(err: OSError):
        raise ConfigurationError(f"Unable to read XSpec test directory: {err.filename}") from err

    found = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_onerror):
        for name in filenames:
            path = Path(dirpath) / name
            if name.endswith(suffix) and path.is_file():
                found.append(path)
    return sorted(found)
