import os
import datetime
import html
from xspec_runner import __version__
from xspec_runner.runner.aggregate import RunSummary


def _replace_tokens(s: str, **tokens) -> str:
    for k, v in tokens.items():
        s = s.replace("{{" + k + "}}", str(v))
    return s


def _row(outcome, base: str) -> str:
    name = html.escape(outcome.name)
    html_report = outcome.xspec.name.replace(".xspec", "") + ".html"
    if outcome.compiled and os.path.exists(os.path.join(base, html_report)):
        name = f'<a href="{html.escape(html_report)}">{name}</a>'
    css = "ok" if outcome.success else "fail"
    cells = [outcome.declared, outcome.passed, outcome.failed, outcome.missed, outcome.tally.pending]
    if not outcome.compiled:
        cells = ["-"] * len(cells)
    tds = "".join(f"<td>{c}</td>" for c in cells)
    return f'      <tr class="{css}"><td>{name}</td>{tds}</tr>'


def generate(summary: RunSummary, base_dir) -> str:
    """Write ``index.html`` linking the per-XSpec HTML reports; return its path."""
    base = str(base_dir)
    os.makedirs(base, exist_ok=True)
    assets = os.path.join(os.path.dirname(__file__), "assets")

    with open(os.path.join(assets, "index.html"), "r", encoding="utf-8") as f:
        page = f.read()

    page = _replace_tokens(
        page,
        TITLE="XSpec Test Report",
        GENERATED_AT=datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        VERSION=__version__,
        VERDICT=html.escape(summary.message()).replace("\n", "<br>"),
        VERDICT_CLASS="ok" if summary.success else "fail",
        ROWS="\n".join(_row(o, base) for o in summary.outcomes),
    )

    path = os.path.join(base, "index.html")
    with open(path, "w", encoding="utf-8") as f:
        f.write(page)
    return path
