import argparse
import sys
from xspec_runner.config import XSpecConfig, parse_pending_kinds
from xspec_runner.exceptions import ConfigurationError, ProgramLoadError, XSpecFailuresError
from xspec_runner.logging_config import setup_logging
from xspec_runner.runner.discover import find_xspecs
from xspec_runner.runner.pipeline import run, check_summary


def _config_from_args(args) -> XSpecConfig:
    return XSpecConfig.from_env(
        skip_tests=True if getattr(args, "skip_tests", False) else None,
        compiler=getattr(args, "compiler", None),
        reporter=getattr(args, "reporter", None),
        test_dir=args.test_dir,
        report_dir=getattr(args, "report_dir", None),
        skip_pending=(
            parse_pending_kinds(args.skip_pending) if getattr(args, "skip_pending", None) else None
        ),
        keep_partial_reports=False if getattr(args, "discard_partial_reports", False) else None,
    )


def _run(args):
    try:
        config = _config_from_args(args)
        summary = run(config)
        check_summary(summary)
    except XSpecFailuresError as e:
        raise SystemExit(str(e))
    except (ConfigurationError, ProgramLoadError) as e:
        raise SystemExit(f"XSpec run aborted: {e}")

    if summary.skipped:
        print("XSpec tests skipped")
    else:
        print(f"{summary.message()} -> {config.report_dir}")


def _list(args):
    config = _config_from_args(args)
    try:
        xspecs = find_xspecs(config.test_dir)
    except ConfigurationError as e:
        raise SystemExit(str(e))
    for xspec in xspecs:
        print(xspec)
    print(f"{len(xspecs)} XSpecs in {config.test_dir}", file=sys.stderr)


def main(argv=None):
    p = argparse.ArgumentParser(prog="xspec-runner", description="Compile and run XSpec test suites")
    p.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ... (or set XSPEC_LOG_LEVEL)")
    p.add_argument("--log-dir", type=str, default=None, help="Write rotating log files to this directory")
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    subs = p.add_subparsers(dest="cmd", required=True)

    p1 = subs.add_parser("run", help="Compile and execute all XSpecs below the test directory")
    p1.add_argument("--test-dir", type=str, help="Directory searched recursively for *.xspec (or set XSPEC_TEST_DIR)")
    p1.add_argument("--report-dir", type=str, help="Directory receiving reports (or set XSPEC_REPORT_DIR)")
    p1.add_argument("--compiler", type=str, help="XSpec compiler stylesheet (or set XSPEC_COMPILER)")
    p1.add_argument("--reporter", type=str, help="XSpec reporter stylesheet (or set XSPEC_REPORTER)")
    p1.add_argument("--skip-tests", action="store_true", help="Skip all XSpec tests and report success")
    p1.add_argument("--skip-pending", type=str, metavar="KINDS",
                    help="Do not compile pending tests for these kinds: xslt,xquery,schematron or all")
    p1.add_argument("--discard-partial-reports", action="store_true",
                    help="Delete XML/HTML reports of executions that aborted")
    p1.set_defaults(func=_run)

    p2 = subs.add_parser("list", help="List the XSpecs that would be run")
    p2.add_argument("--test-dir", type=str, help="Directory searched recursively for *.xspec")
    p2.set_defaults(func=_list)

    args = p.parse_args(argv)
    setup_logging(
        level=args.log_level,
        log_dir=args.log_dir,
        enable_file=args.log_dir is not None,
        json_format=True if args.json_logs else None,
    )
    args.func(args)

if __name__ == "__main__":
    main()
