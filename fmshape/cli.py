from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .config import EngineConfig, load_config
from .errors import ConfigError, EngineError
from .ingest.scanner import load_documents
from .output import OUTPUT_FORMATS, write_output
from .pipeline import FrontmatterPipeline
from .trace import TraceEvent, TraceEventEmitter

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fmshape",
        description="Reshape Markdown front matter with an annotated JSON Schema.",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file.")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides the configuration file).",
    )
    parser.add_argument(
        "--max-ref-depth",
        type=int,
        help="Maximum nesting of $ref resolution (1-100).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser(
        "process",
        help="Transform documents and render the schema's templates.",
    )
    process.add_argument("--schema", type=Path, required=True, help="Schema file (JSON or YAML).")
    process.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="Markdown files or directories to read front matter from.",
    )
    process.add_argument("--output", "-o", type=Path, help="Write output here instead of stdout.")
    process.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format.")
    process.add_argument("--template", help="Container template overriding x-template.")
    process.add_argument(
        "--pattern",
        action="append",
        help="Glob used when scanning directories (repeatable; default *.md, *.markdown).",
    )
    process.add_argument(
        "--unique-order",
        choices=["first", "sorted"],
        help="Order kept by x-derived-unique.",
    )
    process.add_argument(
        "--trace",
        action="store_true",
        help="Print processing trace events to stderr as JSON lines.",
    )
    process.set_defaults(func=_cmd_process)

    plan = subparsers.add_parser("plan", help="Print the directive processing plan.")
    plan.add_argument("--schema", type=Path, required=True, help="Schema file (JSON or YAML).")
    plan.set_defaults(func=_cmd_plan)

    resolve = subparsers.add_parser("resolve", help="Print the schema with all $ref inlined.")
    resolve.add_argument("--schema", type=Path, required=True, help="Schema file (JSON or YAML).")
    resolve.set_defaults(func=_cmd_resolve)

    return parser


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    config = load_config(args.config)
    return config.with_overrides(
        log_level=args.log_level,
        max_ref_depth=args.max_ref_depth,
        unique_order=getattr(args, "unique_order", None),
        output_format=getattr(args, "format", None),
    )


def _cmd_process(args: argparse.Namespace, config: EngineConfig) -> int:
    tracer: TraceEventEmitter | None = None
    if args.trace:
        tracer = TraceEventEmitter(sink=_print_trace_event)

    documents = load_documents(args.inputs, args.pattern)
    LOGGER.info("Loaded front matter from %d document(s)", len(documents))
    pipeline = FrontmatterPipeline(config, tracer=tracer)
    result = pipeline.run(
        args.schema,
        [document.frontmatter for document in documents],
        template=args.template,
        output_format=args.format,
    )
    write_output(
        result.payload,
        result.output_format,
        path=args.output,
        stream=None if args.output is not None else sys.stdout,
    )
    return 0


def _cmd_plan(args: argparse.Namespace, config: EngineConfig) -> int:
    schema = FrontmatterPipeline(config).load_schema(args.schema)
    print(json.dumps({"schema": schema.location, "phases": schema.plan.describe()}, indent=2))
    return 0


def _cmd_resolve(args: argparse.Namespace, config: EngineConfig) -> int:
    schema = FrontmatterPipeline(config).load_schema(args.schema)
    print(json.dumps(schema.root.to_mapping(), indent=2, ensure_ascii=False))
    return 0


def _print_trace_event(event: TraceEvent) -> None:
    record = {
        "event": event.event,
        "scope": event.scope,
        "target": event.target,
        "payload": _plain(event.payload),
    }
    print(json.dumps(record, default=str), file=sys.stderr)


def _plain(value: Any) -> Any:
    if hasattr(value, "items"):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (tuple, list, frozenset)):
        return [_plain(item) for item in value]
    return value


def _report(error: dict[str, Any]) -> None:
    print(json.dumps({"error": error}, ensure_ascii=False, default=str), file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _config_from_args(args)
    except ConfigError as exc:
        _report(exc.to_payload())
        return 1
    logging.basicConfig(level=getattr(logging, config.log_level))

    try:
        return args.func(args, config)
    except EngineError as exc:
        LOGGER.debug("Processing failed", exc_info=True)
        _report(exc.to_payload())
        return 1
    except OSError as exc:
        _report({"kind": "ReadError", "message": str(exc)})
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
