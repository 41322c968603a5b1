"""Compilation of XSpec files into executable test stylesheets."""

from dataclasses import dataclass
from pathlib import Path
from xml.sax import SAXException
from xml.sax.xmlreader import InputSource

from defusedxml import DefusedXmlException
from lxml.sax import ElementTreeContentHandler

from xspec_runner.exceptions import CompilationError, TransformError
from xspec_runner.logging_config import get_logger
from xspec_runner.runner.xspec_filter import make_filter

logger = get_logger("runner")

XML_BASE = "{http://www.w3.org/XML/1998/namespace}base"


@dataclass(frozen=True)
class CompiledXSpec:
    """A compiled test stylesheet and the number of tests it declares."""

    xspec: Path
    path: Path
    tests: int
    pending: int = 0

    def __str__(self) -> str:
        return str(self.path)


def _filtered_tree(ctx, xspec: Path):
    """Read the XSpec through the test filter into an lxml tree."""
    xspec_filter = make_filter(ctx.config.pending_policy)
    builder = ElementTreeContentHandler()
    xspec_filter.setContentHandler(builder)

    try:
        with open(xspec, "rb") as f:
            source = InputSource(str(xspec.resolve()))
            source.setByteStream(f)
            xspec_filter.parse(source)
    except OSError as e:
        raise CompilationError(f"Unable to read XSpec {xspec}: {e}") from e
    except (SAXException, DefusedXmlException) as e:
        raise CompilationError(f"Malformed XSpec {xspec}: {e}") from e

    tree = builder.etree
    # the compiler resolves the tested stylesheet relative to the XSpec
    uri = xspec.resolve().as_uri()
    tree.docinfo.URL = uri
    tree.getroot().set(XML_BASE, uri)
    return tree, xspec_filter


def compile_xspec(ctx, xspec: Path) -> CompiledXSpec:
    """Compile an XSpec with the run's compiler stylesheet.

    The compiled stylesheet is written to ``<report_dir>/xslt/<name>.xslt``.

    Raises:
        CompilationError: If the XSpec is missing or malformed, the compiler
            fails on it, or the compiled stylesheet cannot be written.
    """
    xspec = Path(xspec)
    compiled_path = ctx.compiled_path(xspec)
    logger.info(f"Compiling XSpec to XSLT: {compiled_path}", extra={"xspec": str(xspec)})

    tree, xspec_filter = _filtered_tree(ctx, xspec)

    try:
        result = ctx.programs.compiler.transform(tree)
    except TransformError as e:
        raise CompilationError(f"Unable to compile XSpec {xspec}: {e}") from e

    try:
        compiled_path.parent.mkdir(parents=True, exist_ok=True)
        compiled_path.write_bytes(result)
    except OSError as e:
        raise CompilationError(f"Unable to write compiled XSpec {compiled_path}: {e}") from e

    compiled = CompiledXSpec(
        xspec=xspec,
        path=compiled_path,
        tests=xspec_filter.tests,
        pending=xspec_filter.pending,
    )
    logger.debug(
        f"Compiled {xspec.name}: {compiled.tests} tests, {compiled.pending} pending elided",
        extra={"xspec": str(xspec), "tests": compiled.tests, "pending": compiled.pending},
    )
    return compiled
