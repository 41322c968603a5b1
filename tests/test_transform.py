import pytest
from unittest.mock import Mock
from lxml import etree
from xspec_runner.config import XSPEC_NS
from xspec_runner.exceptions import ProgramLoadError, TransformError
from xspec_runner.resources import ResourceResolver
from xspec_runner.runner.compile import compile_xspec
from xspec_runner.runner.results import ResultsCollector
from xspec_runner.transform import load_artifact, load_program, replay

XSL = 'xmlns:xsl="http://www.w3.org/1999/XSL/Transform"'

TERMINATING_XSL = f"""<xsl:stylesheet version="3.0" {XSL}>
  <xsl:template match="/"><xsl:message terminate="yes">stop here</xsl:message></xsl:template>
</xsl:stylesheet>"""

XSLT3 = f"""<xsl:stylesheet version="3.0" {XSL}>
  <xsl:param name="n" select="3"/>
  <xsl:template match="/">
    <out value="{{if ($n gt 0) then $n else 0}}" items="{{string-join((1 to 3) ! string(.), ',')}}"/>
  </xsl:template>
</xsl:stylesheet>"""

SILENT_XSL = f"""<xsl:stylesheet version="3.0" {XSL} xmlns:x="{XSPEC_NS}">
  <xsl:template name="x:main"/>
</xsl:stylesheet>"""


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestResourceResolver:
    def test_relative_to_base_dir(self, tmp_path, stylesheets):
        """Test relative locations resolve against the base directory."""
        resolver = ResourceResolver(base_dir=tmp_path)
        assert resolver.locate("xsl/compiler.xsl") == stylesheets[0]

    def test_file_uri(self, stylesheets):
        """Test file: URIs resolve to the file they name."""
        compiler = stylesheets[0]
        assert ResourceResolver().locate(compiler.as_uri()) == compiler

    def test_missing_and_directories(self, tmp_path):
        """Test missing files and directories are not found."""
        resolver = ResourceResolver(base_dir=tmp_path)
        assert resolver.locate("nope.xsl") is None
        assert resolver.locate(str(tmp_path)) is None
        assert resolver.resolve("nope.xsl") is None

    def test_resolve_opens_binary_stream(self, tmp_path, stylesheets):
        """Test resolve returns a readable byte stream."""
        with ResourceResolver(base_dir=tmp_path).resolve("xsl/reporter.xsl") as stream:
            assert stream.read(5) == b"<xsl:"


class TestLoadProgram:
    def test_loads_from_file_uri(self, stylesheets):
        """Test a stylesheet is loaded through its file: URI."""
        program = load_program(stylesheets[0].as_uri(), "Compiler")
        assert program.name == "Compiler:compiler.xsl"

    def test_runs_xslt3_stylesheets(self, tmp_path):
        """Test XPath 2.0+ expressions compile and run."""
        program = load_program(str(_write(tmp_path, "modern.xsl", XSLT3)), "Compiler")

        out = etree.fromstring(program.transform(etree.ElementTree(etree.Element("doc"))))

        assert out.get("value") == "3"
        assert out.get("items") == "1,2,3"

    def test_missing_stylesheet(self, tmp_path):
        """Test an unresolvable stylesheet raises ProgramLoadError."""
        with pytest.raises(ProgramLoadError, match="Could not find XSpec Reporter stylesheets in: nowhere.xsl"):
            load_program("nowhere.xsl", "Reporter", ResourceResolver(base_dir=tmp_path))

    def test_not_a_stylesheet(self, tmp_path):
        """Test a document that is not XSLT raises ProgramLoadError."""
        bogus = _write(tmp_path, "bogus.xsl", "<html/>")
        with pytest.raises(ProgramLoadError, match="Unable to compile the XSpec Compiler"):
            load_program(str(bogus), "Compiler")


class TestXsltProgram:
    def test_terminate_becomes_transform_error(self, tmp_path):
        """Test xsl:message terminate surfaces as TransformError."""
        program = load_program(str(_write(tmp_path, "stop.xsl", TERMINATING_XSL)), "Reporter")
        with pytest.raises(TransformError, match="Reporter:stop.xsl"):
            program.transform(etree.ElementTree(etree.Element("doc")))


class TestReplay:
    def test_complete_report(self):
        """Test a complete report is replayed element by element."""
        collector = ResultsCollector()
        replay(f'<x:report xmlns:x="{XSPEC_NS}"><x:test successful="true"/></x:report>'.encode(), collector)
        assert collector.tally.passed == 1

    def test_truncated_report_keeps_complete_results(self):
        """Test a cut-off report delivers the results written before the cut."""
        data = (
            f'<x:report xmlns:x="{XSPEC_NS}"><x:scenario>'
            '<x:test successful="true"/><x:test successful="false"/><x:test succ'
        ).encode()
        collector = ResultsCollector()

        replay(data, collector, partial=True)

        assert (collector.tally.total, collector.tally.passed, collector.tally.failed) == (2, 1, 1)

    def test_empty_output(self):
        """Test output without any element still completes the stream."""
        handler = Mock()
        replay(b'<?xml version="1.0" encoding="UTF-8"?>', handler)
        handler.startDocument.assert_called_once_with()
        handler.endDocument.assert_called_once_with()
        handler.startElementNS.assert_not_called()

    def test_malformed_complete_report(self):
        """Test a broken report from a finished run is an error."""
        with pytest.raises(TransformError, match="Malformed"):
            replay(b"<x:report><x:test>", ResultsCollector())


class TestLoadArtifact:
    def test_runs_compiled_xspec(self, ctx, write_xspec, expects):
        """Test a compiled XSpec runs through x:main and reports every test."""
        compiled = compile_xspec(ctx, write_xspec("calc.xspec", *expects.passing(2), *expects.failing(1)))
        collector = ResultsCollector()

        load_artifact(compiled.path, ctx.programs.processor).run(collector)

        assert (collector.tally.total, collector.tally.passed, collector.tally.failed) == (3, 2, 1)

    def test_program_runs_more_than_once(self, ctx, write_xspec, expects):
        """Test one loaded artifact gives the same results on every run."""
        compiled = compile_xspec(ctx, write_xspec("calc.xspec", *expects.passing(2)))
        program = load_artifact(compiled.path)

        first, second = ResultsCollector(), ResultsCollector()
        program.run(first)
        program.run(second)

        assert first.tally == second.tally

    def test_abort_delivers_results_before_it(self, ctx, write_xspec, expects):
        """Test a terminating run still delivers the results emitted before the abort."""
        xspec = write_xspec("abort.xspec", *expects.passing(2), {"abort": "yes"}, *expects.passing(2))
        compiled = compile_xspec(ctx, xspec)
        collector = ResultsCollector()

        with pytest.raises(TransformError, match="abort.xspec.xslt"):
            load_artifact(compiled.path).run(collector)

        collector.finalize()
        assert collector.tally.total == 2
        assert collector.tally.passed == 2

    def test_empty_report_still_completes_the_stream(self, tmp_path):
        """Test an x:main producing nothing yields an empty tally."""
        artifact = _write(tmp_path, "silent.xslt", SILENT_XSL)
        collector = ResultsCollector()

        load_artifact(artifact).run(collector)

        assert collector.tally.total == 0

    def test_missing_artifact(self, tmp_path):
        """Test a missing compiled XSpec raises TransformError."""
        with pytest.raises(TransformError, match="Unable to load compiled XSpec"):
            load_artifact(tmp_path / "missing.xslt")
