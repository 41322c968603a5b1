import pytest
from types import SimpleNamespace
from xml.sax.xmlreader import AttributesNSImpl
from xspec_runner.config import XSPEC_NS, XSpecConfig
from xspec_runner.context import RunContext
from xspec_runner.exceptions import TransformError
from xspec_runner.transform import load_programs


# Minimal "XSpec compiler": every x:expect becomes an x:test whose outcome is
# the XPath in @test, pending expects are reported as pending, and @abort
# expects terminate the run. Before terminating, an aborting test writes enough
# padding to push the results emitted so far out of the serializer buffers.
COMPILER_XSL = """<xsl:stylesheet version="3.0"
    xmlns:xsl="http://www.w3.org/1999/XSL/Transform"
    xmlns:x="http://www.jenitennison.com/xslt/xspec"
    xmlns:o="urn:xspec-runner:test:xsl">
  <xsl:namespace-alias stylesheet-prefix="o" result-prefix="xsl"/>

  <xsl:template match="/x:description">
    <o:stylesheet version="3.0">
      <o:template name="x:main">
        <x:report>
          <xsl:apply-templates select="*"/>
        </x:report>
      </o:template>
    </o:stylesheet>
  </xsl:template>

  <xsl:template match="x:scenario">
    <x:scenario label="{@label}">
      <xsl:apply-templates select="*"/>
    </x:scenario>
  </xsl:template>

  <xsl:template match="x:pending">
    <xsl:apply-templates select="*"/>
  </xsl:template>

  <xsl:template match="x:expect">
    <o:choose>
      <o:when test="{@test}">
        <x:test successful="true" label="{@label}"/>
      </o:when>
      <o:otherwise>
        <x:test successful="false" label="{@label}"/>
      </o:otherwise>
    </o:choose>
  </xsl:template>

  <xsl:template match="x:expect[ancestor-or-self::*[@pending] or ancestor::x:pending]" priority="2">
    <x:test pending="pending" label="{@label}"/>
  </xsl:template>

  <xsl:template match="x:expect[@abort]" priority="3">
    <x:padding><o:value-of select="string-join((1 to 200000) ! 'padding', ' ')"/></x:padding>
    <o:message terminate="yes">Aborted at <xsl:value-of select="@label"/></o:message>
  </xsl:template>
</xsl:stylesheet>
"""

REPORTER_XSL = """<xsl:stylesheet version="3.0"
    xmlns:xsl="http://www.w3.org/1999/XSL/Transform"
    xmlns:x="http://www.jenitennison.com/xslt/xspec">
  <xsl:output method="html"/>
  <xsl:template match="/">
    <html>
      <body>
        <p class="passed">Passed: <xsl:value-of select="count(//x:test[@successful='true'])"/></p>
        <p class="failed">Failed: <xsl:value-of select="count(//x:test[@successful='false'])"/></p>
      </body>
    </html>
  </xsl:template>
</xsl:stylesheet>
"""


def xspec_document(*expects, scenario="scenario") -> str:
    """Build an XSpec with one scenario; each expect is a dict of attributes."""
    lines = []
    for i, attrs in enumerate(expects):
        attrs = {"label": f"test {i + 1}", **attrs}
        rendered = " ".join(f'{k}="{v}"' for k, v in attrs.items())
        lines.append(f"    <x:expect {rendered}/>")
    body = "\n".join(lines)
    return (
        f'<x:description xmlns:x="{XSPEC_NS}" stylesheet="transform.xsl">\n'
        f'  <x:scenario label="{scenario}">\n{body}\n  </x:scenario>\n'
        f"</x:description>\n"
    )


def passing(n):
    return [{"test": "1 = 1"} for _ in range(n)]


def failing(n):
    return [{"test": "1 = 2"} for _ in range(n)]


@pytest.fixture
def expects():
    """Helpers building x:expect attribute sets and XSpec documents."""
    return SimpleNamespace(passing=passing, failing=failing, document=xspec_document)


@pytest.fixture
def stylesheets(tmp_path):
    """Compiler and reporter stylesheets on disk."""
    xsl_dir = tmp_path / "xsl"
    xsl_dir.mkdir()
    compiler = xsl_dir / "compiler.xsl"
    reporter = xsl_dir / "reporter.xsl"
    compiler.write_text(COMPILER_XSL, encoding="utf-8")
    reporter.write_text(REPORTER_XSL, encoding="utf-8")
    return compiler, reporter


@pytest.fixture
def test_dir(tmp_path):
    path = tmp_path / "xspec"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path, stylesheets, test_dir):
    compiler, reporter = stylesheets
    return XSpecConfig(
        compiler=str(compiler),
        reporter=str(reporter),
        test_dir=test_dir,
        report_dir=tmp_path / "reports",
    )


@pytest.fixture
def ctx(config):
    return RunContext(config=config, programs=load_programs(config))


@pytest.fixture
def write_xspec(test_dir):
    def _write(name, *expects, subdir=None):
        directory = test_dir / subdir if subdir else test_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(xspec_document(*expects), encoding="utf-8")
        return path

    return _write


def _attrs(values):
    return AttributesNSImpl(
        {(None, k): v for k, v in values.items()},
        {(None, k): k for k in values},
    )


class ScriptedProgram:
    """Stand-in for a compiled XSpec emitting a report for the given outcomes.

    With ``abort_after=k`` the run raises TransformError after k tests.
    """

    def __init__(self, outcomes, abort_after=None, nested=False):
        self.outcomes = list(outcomes)
        self.abort_after = abort_after
        self.nested = nested
        self.runs = 0

    def run(self, handler):
        self.runs += 1
        handler.startDocument()
        handler.startPrefixMapping("x", XSPEC_NS)
        handler.startElementNS((XSPEC_NS, "report"), "x:report", _attrs({}))
        handler.startElementNS((XSPEC_NS, "scenario"), "x:scenario", _attrs({"label": "outer"}))
        if self.nested:
            handler.startElementNS((XSPEC_NS, "scenario"), "x:scenario", _attrs({"label": "inner"}))
        for i, outcome in enumerate(self.outcomes):
            if self.abort_after is not None and i == self.abort_after:
                raise TransformError(f"Aborted after {i} tests")
            if outcome == "pending":
                values = {"pending": "not ready", "label": f"t{i}"}
            else:
                values = {"successful": "true" if outcome else "false", "label": f"t{i}"}
            handler.startElementNS((XSPEC_NS, "test"), "x:test", _attrs(values))
            handler.characters(f"result {i}")
            handler.endElementNS((XSPEC_NS, "test"), "x:test")
        if self.nested:
            handler.endElementNS((XSPEC_NS, "scenario"), "x:scenario")
        handler.endElementNS((XSPEC_NS, "scenario"), "x:scenario")
        handler.endElementNS((XSPEC_NS, "report"), "x:report")
        handler.endPrefixMapping("x")
        handler.endDocument()


@pytest.fixture
def scripted_program():
    return ScriptedProgram
