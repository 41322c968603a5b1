"""Resolution of stylesheet locations to readable byte streams."""

import os
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import unquote, urlparse


class ResourceResolver:
    """Resolve filesystem paths and ``file:`` URIs relative to a base directory."""

    def __init__(self, base_dir: Union[str, Path, None] = None):
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    def locate(self, location: str) -> Optional[Path]:
        """Return the file a location points at, or None when it does not exist."""
        if location.startswith("file:"):
            path = Path(unquote(urlparse(location).path))
        else:
            path = Path(os.path.expanduser(location))
            if not path.is_absolute():
                path = self.base_dir / path
        return path if path.is_file() else None

    def resolve(self, location: str) -> Optional[BinaryIO]:
        """Open a location for reading, or return None when it cannot be found."""
        path = self.locate(location)
        if path is None:
            return None
        return open(path, "rb")
