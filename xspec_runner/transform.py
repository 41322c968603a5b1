"""XSLT programs: the compiler/reporter stylesheets and compiled XSpec test stylesheets.

Stylesheets run on Saxon (XSLT 3.0). lxml trees are handed over to the engine
serialized, and the engine's output comes back as bytes or as SAX events.
"""

import re
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
from xml.sax.handler import ContentHandler

from lxml import etree
from lxml.sax import saxify
from saxonche import PySaxonApiError, PySaxonProcessor

from xspec_runner.config import MAIN_TEMPLATE, XSPEC_NS, XSpecConfig
from xspec_runner.exceptions import ProgramLoadError, TransformError
from xspec_runner.logging_config import get_logger
from xspec_runner.resources import ResourceResolver

logger = get_logger("transform")

MAIN_TEMPLATE_NAME = f"{{{XSPEC_NS}}}{MAIN_TEMPLATE}"
"""str: Clark name of the entry-point template of compiled XSpecs."""

_ELEMENT = re.compile(rb"<[A-Za-z_]")


@lru_cache(maxsize=None)
def default_processor() -> PySaxonProcessor:
    """The Saxon processor shared by every program of this process."""
    return PySaxonProcessor(license=False)


def _compile(processor: PySaxonProcessor, path: Path):
    executable = processor.new_xslt30_processor().compile_stylesheet(stylesheet_file=str(path))
    if executable is None:
        raise PySaxonApiError(f"No stylesheet compiled from {path}")
    return executable


class XsltProgram:
    """A compiled stylesheet that can be applied any number of times.

    The executable is never modified after loading, each call gets its own
    transformation context.
    """

    def __init__(self, name: str, executable, processor: PySaxonProcessor):
        self.name = name
        self._executable = executable
        self._processor = processor

    @classmethod
    def from_file(cls, name: str, path: Path, processor: PySaxonProcessor) -> "XsltProgram":
        return cls(name, _compile(processor, path), processor)

    def transform(self, doc) -> bytes:
        """Apply the stylesheet to an lxml tree and return the serialized result.

        Raises:
            TransformError: If the transformation aborts (xsl:message terminate,
                runtime error, unresolvable document, ...).
        """
        try:
            node = self._processor.parse_xml(xml_text=etree.tostring(doc, encoding="unicode"))
            result = self._executable.transform_to_string(xdm_node=node)
        except PySaxonApiError as e:
            logger.debug(f"{self.name}: {e}", extra={"program": self.name})
            raise TransformError(f"{self.name}: {e}") from e
        return (result or "").encode("utf-8")

    def call_template(self, template: str, output: Path) -> None:
        """Call a named template, serializing the principal result to ``output``.

        Raises:
            TransformError: If the transformation aborts. Whatever the engine
                wrote before the abort stays in ``output``.
        """
        try:
            self._executable.call_template_returning_file(
                template_name=template, output_file=str(output)
            )
        except PySaxonApiError as e:
            logger.debug(f"{self.name}: {e}", extra={"program": self.name})
            raise TransformError(f"{self.name}: {e}") from e


@dataclass(frozen=True)
class Programs:
    """Read-only handle on the stylesheets shared by every XSpec of a run."""

    compiler: XsltProgram
    reporter: XsltProgram
    processor: PySaxonProcessor


def load_program(
    location: str,
    role: str,
    resolver: Optional[ResourceResolver] = None,
    processor: Optional[PySaxonProcessor] = None,
) -> XsltProgram:
    """Resolve and compile one of the externally supplied stylesheets.

    Raises:
        ProgramLoadError: If the stylesheet cannot be found or does not compile.
    """
    resolver = resolver or ResourceResolver()
    processor = processor or default_processor()
    path = resolver.locate(location)
    if path is None:
        raise ProgramLoadError(f"Could not find XSpec {role} stylesheets in: {location}")

    try:
        program = XsltProgram.from_file(f"{role}:{path.name}", path, processor)
    except PySaxonApiError as e:
        logger.error(f"Unable to compile the XSpec {role}: {location}")
        raise ProgramLoadError(f"Unable to compile the XSpec {role}: {location}: {e}") from e

    logger.debug(f"Using XSpec {role}: {path}")
    return program


def load_programs(
    config: XSpecConfig,
    resolver: Optional[ResourceResolver] = None,
    processor: Optional[PySaxonProcessor] = None,
) -> Programs:
    """Load the compiler and reporter once for the whole run."""
    processor = processor or default_processor()
    return Programs(
        compiler=load_program(config.compiler, "Compiler", resolver, processor),
        reporter=load_program(config.reporter, "Reporter", resolver, processor),
        processor=processor,
    )


def replay(data: bytes, handler: ContentHandler, partial: bool = False) -> None:
    """Feed a serialized report to ``handler`` as SAX events.

    A ``partial`` report is the output of an aborted run. Parsing stops where
    the output was cut off: elements whose start tag was written completely
    are delivered, an element cut off inside its start tag is not.
    """
    root = None
    if _ELEMENT.search(data):
        parser = etree.XMLPullParser(events=("start",), huge_tree=True)
        try:
            parser.feed(data)
            parser.close()
        except etree.XMLSyntaxError as e:
            if not partial:
                raise TransformError(f"Malformed XSpec report: {e}") from e
        for _, element in parser.read_events():
            if root is None:
                root = element
    if root is None:
        handler.startDocument()
        handler.endDocument()
        return
    saxify(root, handler)


class XSpecProgram:
    """A compiled XSpec test stylesheet, run through its ``x:main`` template."""

    def __init__(self, program: XsltProgram):
        self._program = program

    @property
    def name(self) -> str:
        return self._program.name

    def run(self, handler: ContentHandler) -> None:
        """Execute the tests once and feed the produced report to ``handler``.

        Raises:
            TransformError: If the run aborts, after the part of the report
                written up to the abort has been delivered.
        """
        with tempfile.TemporaryDirectory(prefix="xspec-run-") as tmp:
            output = Path(tmp) / "report.xml"
            try:
                self._program.call_template(MAIN_TEMPLATE_NAME, output)
            except TransformError:
                replay(_read(output), handler, partial=True)
                raise
            replay(_read(output), handler)


def _read(path: Path) -> bytes:
    return path.read_bytes() if path.exists() else b""


def load_artifact(path: Path, processor: Optional[PySaxonProcessor] = None) -> XSpecProgram:
    """Load a compiled XSpec.

    Raises:
        TransformError: If the compiled stylesheet cannot be loaded.
    """
    path = Path(path)
    try:
        program = XsltProgram.from_file(path.name, path.resolve(), processor or default_processor())
    except PySaxonApiError as e:
        raise TransformError(f"Unable to load compiled XSpec {path}: {e}") from e
    return XSpecProgram(program)
