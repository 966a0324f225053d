"""TOG CLI — Command-line interface for the TOG interpreter.

Commands:
  tog run <file.tog>        — Run a program (calls `main` if defined)
  tog check <file.tog>      — Lex, parse, definition checks and type checks
  tog tokens <file.tog>     — Dump the token stream as JSON
  tog ast <file.tog>        — Dump the syntax tree as JSON
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from typing import Any, Optional

from tog import __version__
from tog.config import ConfigError, TogConfig, load_config
from tog.errors import Diagnostic, TogError
from tog.interpreter import evaluate
from tog.lexer import tokenize
from tog.parser import parse
from tog.type_checker import check_source, check_types

logger = logging.getLogger(__name__)


def _read_source(path: str) -> Optional[str]:
    if not os.path.isfile(path):
        print(json.dumps({"error": f"File not found: {path}"}), file=sys.stderr)
        return None
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _load_config(args: argparse.Namespace) -> TogConfig:
    config = load_config(getattr(args, "config", None), start_dir=os.path.dirname(os.path.abspath(args.file)))
    if getattr(args, "format", None):
        config.format = args.format
    if getattr(args, "strict", False):
        config.strict_types = True
    return config


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report(diagnostics: list[Diagnostic], fmt: str, stream=None) -> None:
    stream = stream or sys.stderr
    if fmt == "json":
        print(json.dumps([d.to_dict() for d in diagnostics], indent=2), file=stream)
    else:
        for d in diagnostics:
            print(str(d), file=stream)


def _node_to_dict(node: Any) -> Any:
    if isinstance(node, (list, tuple)):
        return [_node_to_dict(n) for n in node]
    if dataclasses.is_dataclass(node) and not isinstance(node, type):
        d: dict[str, Any] = {"node": type(node).__name__}
        for f in dataclasses.fields(node):
            value = getattr(node, f.name)
            if f.name == "location":
                d[f.name] = str(value) if value is not None else None
            else:
                d[f.name] = _node_to_dict(value)
        return d
    return node


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    """Run a TOG program."""
    source = _read_source(args.file)
    if source is None:
        return 1
    config = _load_config(args)
    if not args.verbose:
        _configure_logging(config.log_level)

    try:
        program = parse(source, filename=args.file)
        diagnostics = check_types(program)
        if diagnostics:
            if config.strict_types:
                _report(diagnostics, config.format)
                return 1
            for d in diagnostics:
                logger.warning("%s", d)
        evaluate(program, args.entry or config.entry, config=config)
    except TogError as e:
        _report([e.diagnostic], config.format)
        return 1
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Lex, parse, and check a program without running it."""
    source = _read_source(args.file)
    if source is None:
        return 1
    config = _load_config(args)

    diagnostics = check_source(source, filename=args.file)
    if diagnostics:
        _report(diagnostics, config.format, sys.stdout)
        return 1
    if config.format == "json":
        print(json.dumps({"status": "ok", "file": args.file}))
    else:
        print("ok")
    return 0


def cmd_tokens(args: argparse.Namespace) -> int:
    """Dump the token stream as JSON."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        tokens = tokenize(source, filename=args.file)
    except TogError as e:
        print(e.to_json(), file=sys.stderr)
        return 1
    out = [
        {"type": t.type.name, "value": t.value, "line": t.location.line, "column": t.location.column}
        for t in tokens
    ]
    print(json.dumps(out, indent=2))
    return 0


def cmd_ast(args: argparse.Namespace) -> int:
    """Dump the syntax tree as JSON."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        program = parse(source, filename=args.file)
    except TogError as e:
        print(e.to_json(), file=sys.stderr)
        return 1
    print(json.dumps(_node_to_dict(program), indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tog",
        description="TOG — a small, optionally typed scripting language",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run
    p_run = subparsers.add_parser("run", help="Run a TOG program")
    p_run.add_argument("file", help="TOG source file (.tog)")
    p_run.add_argument("--entry", help="Entry function (default: main)")
    p_run.add_argument("--format", choices=["text", "json"], help="Diagnostic output format")
    p_run.add_argument("--strict", action="store_true", help="Treat type check findings as errors")
    p_run.add_argument("--config", help="Path to a config file")
    p_run.set_defaults(func=cmd_run)

    # check
    p_check = subparsers.add_parser("check", help="Check a TOG program without running it")
    p_check.add_argument("file", help="TOG source file (.tog)")
    p_check.add_argument("--format", choices=["text", "json"], help="Diagnostic output format")
    p_check.add_argument("--config", help="Path to a config file")
    p_check.set_defaults(func=cmd_check)

    # tokens
    p_tokens = subparsers.add_parser("tokens", help="Dump tokens as JSON")
    p_tokens.add_argument("file", help="TOG source file (.tog)")
    p_tokens.set_defaults(func=cmd_tokens)

    # ast
    p_ast = subparsers.add_parser("ast", help="Dump the syntax tree as JSON")
    p_ast.add_argument("file", help="TOG source file (.tog)")
    p_ast.set_defaults(func=cmd_ast)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.verbose:
        _configure_logging("DEBUG")

    try:
        return args.func(args)
    except ConfigError as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
