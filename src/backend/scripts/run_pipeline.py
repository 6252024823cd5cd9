from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


def _load_engine(spec: Optional[str]):
    """Instantiate a rule engine from ``module:factory``."""
    from pipelines.engine import NullRuleEngine

    if not spec:
        return NullRuleEngine()
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise SystemExit(f"--engine must look like 'package.module:factory', got '{spec}'.")
    module = importlib.import_module(module_name)
    return getattr(module, attr)()


def _parse_tags(values: List[str]) -> dict:
    tags = {}
    for value in values:
        key, sep, expected = value.partition("=")
        if not sep:
            raise SystemExit(f"--tag must look like 'key=value', got '{value}'.")
        tags[key.strip()] = expected.strip()
    return tags


def build_parser() -> argparse.ArgumentParser:
    from pipelines.factory import COMMANDS

    parser = argparse.ArgumentParser(description="Build and run a rule pipeline.")
    parser.add_argument("command", choices=sorted(COMMANDS), help="Pipeline to run.")
    parser.add_argument("--path", action="append", default=[], help="Directory or file containing rules.")
    parser.add_argument("--module", action="append", default=[], help="Module directory with a module.yaml manifest.")
    parser.add_argument("--input-path", action="append", default=[], help="File or directory of input objects.")
    parser.add_argument("--option", default=None, help="Options file (defaults to rule-pipeline.yaml when present).")
    parser.add_argument("--format", default=None, help="Output format (Json, Yaml, Csv, Markdown, Wide, Sarif, NUnit3).")
    parser.add_argument("--output-path", default=None, help="Write output to this file instead of stdout.")
    parser.add_argument("--outcome", default=None, help="Outcomes to write, e.g. 'Fail,Error'.")
    parser.add_argument("--baseline", default=None, help="Baseline to apply.")
    parser.add_argument("--name", action="append", default=[], help="Only include rules with this name.")
    parser.add_argument("--tag", action="append", default=[], help="Only include rules with this tag (key=value).")
    parser.add_argument("--engine", default=None, help="Rule engine factory as 'package.module:factory'.")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase log verbosity.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    _ensure_backend_on_path()

    from common.rule_pipeline.config import OutputOption, PipelineOption
    from common.rule_pipeline.errors import PipelineError, RuleFailedError
    from common.rule_pipeline.settings import find_option_file, load_option
    from pipelines.builder import InvokePipelineBuilderBase
    from pipelines.factory import create_builder, source
    from pipelines.host import LoggingHostContext

    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    option_path = Path(args.option) if args.option else find_option_file(Path.cwd())
    option = load_option(option_path)
    overrides = PipelineOption(
        output=OutputOption(format=args.format, path=args.output_path, outcome=args.outcome),
    )

    host = LoggingHostContext()
    discovery = source(option, host)
    for path in args.path:
        discovery.directory(path)
    for path in args.module:
        discovery.module(path)

    try:
        builder = create_builder(args.command, discovery.build(), option, host, engine=_load_engine(args.engine))
        builder.configure(overrides)
        builder.name(*args.name).tag(_parse_tags(args.tag)).use_baseline(args.baseline)
        if isinstance(builder, InvokePipelineBuilderBase):
            builder.input_path(*args.input_path)
        pipeline = builder.build()
        if pipeline is None:
            return 1
        with pipeline:
            pipeline.begin()
            pipeline.end()
    except RuleFailedError as exc:
        logging.getLogger(__name__).error("%s", exc)
        return 1
    except PipelineError as exc:
        logging.getLogger(__name__).error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
