"""Streaming SAX filter that counts XSpec assertions and elides pending ones."""

from typing import Dict, List, Optional, Tuple
from xml.sax.handler import feature_namespaces
from xml.sax.saxutils import XMLFilterBase

import defusedxml.sax

from xspec_runner.config import XSPEC_NS
from xspec_runner.exceptions import FilterError

ASSERTION_NAMES = frozenset(
    (
        "expect",
        "expect-assert",
        "expect-not-assert",
        "expect-report",
        "expect-not-report",
        "expect-rule",
    )
)
"""Local names (in the XSpec namespace) of elements that each declare one test."""

PENDING_CARRIERS = ASSERTION_NAMES | {"scenario"}
"""Elements that may be marked pending through a ``pending`` attribute."""


class XSpecTestFilter(XMLFilterBase):
    """Count the tests an XSpec declares while passing its events downstream.

    Pending tests are either passed through (and counted as tests) or, when
    the pending policy for the description's kind says so, removed from the
    event stream together with their whole subtree and counted as pending.

    Counts are only available once the whole document has been read.
    """

    def __init__(self, parent=None, pending_policy: Optional[Dict[str, bool]] = None):
        super().__init__(parent)
        self._policy = dict(pending_policy or {})
        self._reset()

    def _reset(self) -> None:
        self._tests = 0
        self._pending = 0
        self._kind: Optional[str] = None
        self._complete = False
        self._depth = 0
        self._pending_from: Optional[int] = None
        self._deferred_mappings: List[Tuple[Optional[str], str]] = []
        self._prefix_stack: List[Tuple[Optional[str], ...]] = []
        self._closing: List[Optional[str]] = []

    # -- results ---------------------------------------------------------

    def _require_complete(self) -> None:
        if not self._complete:
            raise FilterError("XSpec has not been completely read, test counts are not final")

    @property
    def tests(self) -> int:
        """Number of tests left in the filtered XSpec."""
        self._require_complete()
        return self._tests

    @property
    def pending(self) -> int:
        """Number of pending tests removed from the filtered XSpec."""
        self._require_complete()
        return self._pending

    @property
    def kind(self) -> str:
        self._require_complete()
        return self._kind or "xslt"

    # -- state -----------------------------------------------------------

    @property
    def _elide_pending(self) -> bool:
        return self._policy.get(self._kind or "xslt", False)

    @property
    def _suppressing(self) -> bool:
        return self._pending_from is not None and self._elide_pending

    @staticmethod
    def _detect_kind(attrs) -> str:
        names = {local for uri, local in attrs.keys() if not uri}
        if "schematron" in names:
            return "schematron"
        if "query" in names:
            return "xquery"
        return "xslt"

    @staticmethod
    def _starts_pending(uri, local, attrs) -> bool:
        if uri != XSPEC_NS:
            return False
        if local == "pending":
            return True
        return local in PENDING_CARRIERS and (None, "pending") in attrs.keys()

    # -- ContentHandler --------------------------------------------------

    def startDocument(self):
        self._reset()
        super().startDocument()

    def endDocument(self):
        super().endDocument()
        self._complete = True

    def startPrefixMapping(self, prefix, uri):
        # held back until we know whether the owning element is forwarded
        self._deferred_mappings.append((prefix, uri))

    def endPrefixMapping(self, prefix):
        if prefix in self._closing:
            self._closing.remove(prefix)
            super().endPrefixMapping(prefix)

    def startElementNS(self, name, qname, attrs):
        uri, local = name
        self._depth += 1
        if uri == XSPEC_NS and local == "description" and self._kind is None:
            self._kind = self._detect_kind(attrs)
        if self._pending_from is None and self._starts_pending(uri, local, attrs):
            self._pending_from = self._depth

        if uri == XSPEC_NS and local in ASSERTION_NAMES:
            if self._suppressing:
                self._pending += 1
            else:
                self._tests += 1

        mappings, self._deferred_mappings = self._deferred_mappings, []
        if self._suppressing:
            self._prefix_stack.append(())
            return
        for prefix, ns in mappings:
            super().startPrefixMapping(prefix, ns)
        self._prefix_stack.append(tuple(prefix for prefix, _ns in mappings))
        super().startElementNS(name, qname, attrs)

    def endElementNS(self, name, qname):
        suppressed = self._suppressing
        if self._pending_from == self._depth:
            self._pending_from = None
        self._depth -= 1
        self._closing = list(self._prefix_stack.pop())
        if not suppressed:
            super().endElementNS(name, qname)

    def characters(self, content):
        if not self._suppressing:
            super().characters(content)

    def ignorableWhitespace(self, chars):
        if not self._suppressing:
            super().ignorableWhitespace(chars)

    def processingInstruction(self, target, data):
        if not self._suppressing:
            super().processingInstruction(target, data)

    def skippedEntity(self, name):
        if not self._suppressing:
            super().skippedEntity(name)


def make_filter(pending_policy: Optional[Dict[str, bool]] = None) -> XSpecTestFilter:
    """Create a filter on top of a hardened, namespace aware SAX parser."""
    parser = defusedxml.sax.make_parser()
    parser.setFeature(feature_namespaces, True)
    return XSpecTestFilter(parser, pending_policy)
