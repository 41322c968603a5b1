"""Consumers of the XSpec report event stream and the tee that feeds them."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List
from xml.sax.handler import ContentHandler
from xml.sax.saxutils import XMLGenerator
from xml.sax.xmlreader import AttributesImpl, AttributesNSImpl

from lxml.sax import ElementTreeContentHandler

from xspec_runner.logging_config import get_logger

logger = get_logger("runner")


def copy_attributes(attrs):
    """Detached copy of SAX attributes; ``Attributes.copy`` shares the underlying dict."""
    names = attrs.getNames()
    values = {name: attrs.getValue(name) for name in names}
    if isinstance(attrs, AttributesNSImpl):
        return AttributesNSImpl(values, {name: attrs.getQNameByName(name) for name in names})
    return AttributesImpl(values)


class EventSink(ContentHandler):
    """A consumer of report events.

    ``close`` is called exactly once when the stream has ended, or when the
    execution producing it aborted (``aborted=True``).
    """

    name = "sink"

    def close(self, aborted: bool = False) -> None:
        pass


@dataclass(frozen=True)
class BranchError:
    branch: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.branch}: {self.error}"


class TeeHandler(ContentHandler):
    """Forward every event of one stream to several sinks.

    A sink that raises is detached from the stream and its error recorded,
    the remaining sinks keep receiving events. Each sink gets its own copy of
    element attributes.
    """

    def __init__(self, branches: Iterable[EventSink]):
        super().__init__()
        self._branches: List[EventSink] = list(branches)
        self._active: List[EventSink] = list(self._branches)
        self._closed = False
        self.errors: List[BranchError] = []

    def _fail(self, branch: EventSink, error: Exception) -> None:
        if branch in self._active:
            self._active.remove(branch)
        self.errors.append(BranchError(branch.name, error))
        logger.warning(
            f"Report branch '{branch.name}' failed: {error}",
            extra={"branch": branch.name, "error": str(error)},
        )

    def _forward(self, method: str, *args) -> None:
        for branch in list(self._active):
            try:
                getattr(branch, method)(*args)
            except Exception as e:
                self._fail(branch, e)

    def _forward_with_attrs(self, method: str, name, qname, attrs) -> None:
        for branch in list(self._active):
            try:
                getattr(branch, method)(name, qname, copy_attributes(attrs))
            except Exception as e:
                self._fail(branch, e)

    @property
    def active(self) -> List[str]:
        return [branch.name for branch in self._active]

    def setDocumentLocator(self, locator):
        self._forward("setDocumentLocator", locator)

    def startDocument(self):
        self._forward("startDocument")

    def endDocument(self):
        self._forward("endDocument")

    def startPrefixMapping(self, prefix, uri):
        self._forward("startPrefixMapping", prefix, uri)

    def endPrefixMapping(self, prefix):
        self._forward("endPrefixMapping", prefix)

    def startElement(self, name, attrs):
        for branch in list(self._active):
            try:
                branch.startElement(name, copy_attributes(attrs))
            except Exception as e:
                self._fail(branch, e)

    def endElement(self, name):
        self._forward("endElement", name)

    def startElementNS(self, name, qname, attrs):
        self._forward_with_attrs("startElementNS", name, qname, attrs)

    def endElementNS(self, name, qname):
        self._forward("endElementNS", name, qname)

    def characters(self, content):
        self._forward("characters", content)

    def ignorableWhitespace(self, whitespace):
        self._forward("ignorableWhitespace", whitespace)

    def processingInstruction(self, target, data):
        self._forward("processingInstruction", target, data)

    def skippedEntity(self, name):
        self._forward("skippedEntity", name)

    def close(self, aborted: bool = False) -> None:
        """Close every sink once, detached ones included."""
        if self._closed:
            return
        self._closed = True
        for branch in self._branches:
            detached = branch not in self._active
            try:
                branch.close(aborted=aborted or detached)
            except Exception as e:
                self._fail(branch, e)


class XmlArchiveSink(EventSink):
    """Serialise the events verbatim into an XML file."""

    name = "xml-archive"

    def __init__(self, path, keep_partial: bool = True):
        self.path = Path(path)
        self.keep_partial = keep_partial
        self._file = None
        self._writer = None

    def startDocument(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "wb")
        self._writer = XMLGenerator(self._file, encoding="utf-8", short_empty_elements=True)
        self._writer.startDocument()

    def endDocument(self):
        self._writer.endDocument()

    def startPrefixMapping(self, prefix, uri):
        self._writer.startPrefixMapping(prefix, uri)

    def endPrefixMapping(self, prefix):
        self._writer.endPrefixMapping(prefix)

    def startElementNS(self, name, qname, attrs):
        self._writer.startElementNS(name, qname, attrs)

    def endElementNS(self, name, qname):
        self._writer.endElementNS(name, qname)

    def characters(self, content):
        self._writer.characters(content)

    def ignorableWhitespace(self, content):
        self._writer.ignorableWhitespace(content)

    def processingInstruction(self, target, data):
        self._writer.processingInstruction(target, data)

    def close(self, aborted: bool = False) -> None:
        if self._file is None:
            # nothing was produced, drop a report left by an earlier run
            self.path.unlink(missing_ok=True)
            return
        self._file.close()
        self._file = None
        if aborted and not self.keep_partial:
            self.path.unlink(missing_ok=True)
        else:
            logger.info(f"XML report written: {self.path}", extra={"report": str(self.path)})


class HtmlReportSink(EventSink):
    """Rebuild the report tree from the events and render it with the reporter stylesheet."""

    name = "html-report"

    def __init__(self, reporter, path, keep_partial: bool = True):
        self.reporter = reporter
        self.path = Path(path)
        self.keep_partial = keep_partial
        self._builder = ElementTreeContentHandler()
        self._received = False

    def startPrefixMapping(self, prefix, uri):
        self._builder.startPrefixMapping(prefix, uri)

    def endPrefixMapping(self, prefix):
        self._builder.endPrefixMapping(prefix)

    def startElementNS(self, name, qname, attrs):
        self._received = True
        self._builder.startElementNS(name, qname, attrs)

    def endElementNS(self, name, qname):
        self._builder.endElementNS(name, qname)

    def characters(self, content):
        self._builder.characters(content)

    def ignorableWhitespace(self, content):
        self._builder.characters(content)

    def processingInstruction(self, target, data):
        self._builder.processingInstruction(target, data)

    def close(self, aborted: bool = False) -> None:
        if aborted and not self.keep_partial:
            self.path.unlink(missing_ok=True)
            return
        if not self._received:
            self.path.unlink(missing_ok=True)
            return
        result = self.reporter.transform(self._builder.etree)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(result)
        logger.info(f"HTML report written: {self.path}", extra={"report": str(self.path)})
