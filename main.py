"""
main.py

puml2drawio - PlantUML to draw.io converter

Command-line front end for :mod:`plantuml.importer`.

Usage:
    python main.py convert diagram.puml -o diagram.drawio
    python main.py regenerate diagram.drawio --source edited.puml
    python main.py extract diagram.drawio
    python main.py types

Dependencies:
    pip install platformdirs tomli-w   (plus tomli on Python < 3.11)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from drawio.builder import MalformedCell
from plantuml.importer import (
    SourceNotFound,
    UnknownDialect,
    convert,
    extract_plantuml,
    get_supported_types,
    regenerate,
)
from settings import get_settings

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="puml2drawio",
        description="Convert PlantUML diagrams into editable draw.io drawings.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser("convert", help="Convert a .puml file")
    convert_parser.add_argument("input", help="PlantUML file, or - for stdin")
    convert_parser.add_argument("-o", "--output", help="Output .drawio path (default: stdout)")
    convert_parser.add_argument("--no-document", action="store_true",
                                help="Emit cells without the <mxfile> frame")
    convert_parser.add_argument("--no-group", action="store_true",
                                help="Do not wrap cells in the source-carrying group")
    convert_parser.add_argument("--group-id", help="Id of the wrapping group")

    regen_parser = subparsers.add_parser(
        "regenerate", help="Re-convert a drawing from its embedded source",
    )
    regen_parser.add_argument("drawing", help="Existing .drawio file")
    regen_parser.add_argument("--source", help="Replacement PlantUML file")
    regen_parser.add_argument("-o", "--output", help="Output .drawio path (default: stdout)")

    extract_parser = subparsers.add_parser("extract", help="Print the embedded PlantUML source")
    extract_parser.add_argument("drawing", help="Existing .drawio file")

    subparsers.add_parser("types", help="List supported diagram types in detection order")

    return parser


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _with_extension(output: Optional[str], extension: str) -> Optional[str]:
    """Append *extension* to an output path that names none."""
    if output and not Path(output).suffix:
        return output + extension
    return output


def _write(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        log.info("wrote %s", output)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _configure_logging(verbose: bool, level_name: str) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(args.verbose, settings.settings.logging.level)
    try:
        settings.ensure_file_complete()
    except OSError as e:
        log.debug("settings file not written: %s", e)
    output = settings.settings.output

    try:
        if args.command == "convert":
            result = convert(
                _read(args.input),
                wrap_in_document=output.wrap_in_document and not args.no_document,
                wrap_in_group=output.wrap_in_group and not args.no_group,
                group_id=args.group_id or output.group_id,
                diagram_name=output.diagram_name,
            )
            log.info("detected %s diagram", result.diagram_type)
            _write(result.xml, _with_extension(args.output, output.extension))
        elif args.command == "regenerate":
            new_source = _read(args.source) if args.source else None
            result = regenerate(
                _read(args.drawing), new_source, diagram_name=output.diagram_name,
            )
            _write(result.xml, _with_extension(args.output, output.extension))
        elif args.command == "extract":
            source = extract_plantuml(_read(args.drawing))
            if source is None:
                raise SourceNotFound(f"No PlantUML source found in {args.drawing}")
            _write(source, None)
        elif args.command == "types":
            _write("\n".join(get_supported_types()), None)
    except (UnknownDialect, SourceNotFound, MalformedCell) as e:
        print(f"puml2drawio: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
