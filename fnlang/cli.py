"""
Command line front end for the fnlang parser.

Usage:
    fnlang parse FILE... [--backend rd|peg] [--format tree|json|yaml]
    fnlang fmt FILE... [--config STYLE.yaml] [--spaces N] [--check]
    fnlang check FILE...

Parse errors are printed with the offending source line and exit status 1.
"""

import argparse
import sys
from pathlib import Path

from . import parser as rd_parser
from . import peg_parser
from .config import ConfigError, PrintConfig, config_from_dict, load_print_config
from .converter import to_json, to_yaml
from .errors import ParseError
from .printer import format_program


BACKENDS = {
    'rd': rd_parser.parse,
    'peg': peg_parser.parse,
}


def _read(path: Path):
    try:
        return path.read_text(encoding='utf-8')
    except OSError as e:
        print(f"{path}: cannot read file: {e.strerror}", file=sys.stderr)
        return None
    except UnicodeDecodeError:
        print(f"{path}: cannot decode file as UTF-8", file=sys.stderr)
        return None


def _report(path: Path, source: str, error: ParseError):
    print(f"{path}:{error.line}:{error.column}: {type(error).__name__}", file=sys.stderr)
    print(error.format_with_source(source), file=sys.stderr)


def cmd_parse(args) -> int:
    parse = BACKENDS[args.backend]
    failures = 0

    for path in args.files:
        source = _read(path)
        if source is None:
            failures += 1
            continue
        try:
            program = parse(source)
        except ParseError as e:
            _report(path, source, e)
            failures += 1
            continue

        if args.format == 'json':
            print(to_json(program))
        elif args.format == 'yaml':
            print(to_yaml(program), end='')
        else:
            for func in program.functions:
                print(func)

    return 1 if failures else 0


def _style(args) -> PrintConfig:
    config = load_print_config(args.config) if args.config else PrintConfig()
    overrides = {}
    if args.spaces is not None:
        overrides.update(indent_is_tab=False, indent_size=args.spaces)
    if args.max_line_length is not None:
        overrides['max_line_length'] = args.max_line_length
    # Command line values go through the same checks as the style file
    return config_from_dict(overrides, base=config)


def cmd_fmt(args) -> int:
    try:
        config = _style(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    failures = 0
    for path in args.files:
        source = _read(path)
        if source is None:
            failures += 1
            continue
        try:
            program = rd_parser.parse(source)
        except ParseError as e:
            _report(path, source, e)
            failures += 1
            continue

        formatted = format_program(program, config)
        if args.check:
            if formatted != source:
                print(f"{path}: not formatted")
                failures += 1
        else:
            print(formatted, end='')

    return 1 if failures else 0


def cmd_check(args) -> int:
    failures = 0

    for path in args.files:
        source = _read(path)
        if source is None:
            failures += 1
            continue

        outcomes = {}
        for name, parse in BACKENDS.items():
            try:
                outcomes[name] = parse(source)
            except ParseError as e:
                outcomes[name] = e

        rd, peg = outcomes['rd'], outcomes['peg']
        if isinstance(rd, ParseError) or isinstance(peg, ParseError):
            same = (type(rd) is type(peg) and rd.offset == peg.offset)
        else:
            same = rd == peg

        if not same:
            print(f"{path}: backends disagree")
            print(f"  rd:  {rd!r}")
            print(f"  peg: {peg!r}")
            failures += 1
        elif isinstance(rd, ParseError):
            _report(path, source, rd)
            failures += 1
        else:
            print(f"{path}: OK ({len(rd.functions)} function(s))")

    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fnlang",
        description="Parse and format fnlang source files."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse files and print the syntax tree")
    parse_cmd.add_argument("files", nargs="+", type=Path, help="Files to parse")
    parse_cmd.add_argument(
        "--backend",
        choices=sorted(BACKENDS),
        default="rd",
        help="Parser implementation: recursive descent (rd) or Lark grammar (peg)"
    )
    parse_cmd.add_argument(
        "--format",
        choices=["tree", "json", "yaml"],
        default="tree",
        help="Output format"
    )
    parse_cmd.set_defaults(func=cmd_parse)

    fmt_cmd = subparsers.add_parser("fmt", help="Print files in canonical formatting")
    fmt_cmd.add_argument("files", nargs="+", type=Path, help="Files to format")
    fmt_cmd.add_argument("--config", type=Path, help="YAML style file")
    fmt_cmd.add_argument("--spaces", type=int, help="Indent with N spaces instead of tabs")
    fmt_cmd.add_argument("--max-line-length", type=int, help="Wrap long bodies (0 disables)")
    fmt_cmd.add_argument(
        "--check",
        action="store_true",
        help="Report files that are not already formatted instead of printing them"
    )
    fmt_cmd.set_defaults(func=cmd_fmt)

    check_cmd = subparsers.add_parser("check", help="Parse files with both backends and compare")
    check_cmd.add_argument("files", nargs="+", type=Path, help="Files to check")
    check_cmd.set_defaults(func=cmd_check)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
