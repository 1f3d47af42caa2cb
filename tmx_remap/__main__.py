#!/usr/bin/env python3

"""
tmx-remap - rewrite the tile grids of a Tiled TMX map

Usage:
    python -m tmx_remap <map.tmx> replace <find> <replace>
    python -m tmx_remap <map.tmx> resize <tilecount> <columns>
    python -m tmx_remap <map.tmx> resize --from-image <tileset.png>
    python -m tmx_remap <map.tmx> convert

Tile numbers for 'replace' are zero-based indexes into the tileset, as shown
by Tiled's tileset view. The result goes to standard output unless
--in-place or --output is given.
"""

import argparse
import logging
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

from .errors import TmxError
from .model import TiledMap
from .remap import Convert, Operation, Replace, Resize

logger = logging.getLogger("tmx_remap")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmx-remap",
        description="Replace or remap tile indexes in a Tiled TMX map, or convert it to JSON.",
    )
    parser.add_argument("file", type=Path, help="input .tmx file")
    parser.add_argument("-i", "--in-place", action="store_true",
                        help="save the result to the input file itself")
    parser.add_argument("-o", "--output", type=Path,
                        help="write the result to this file instead")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="report what was changed on stderr")

    commands = parser.add_subparsers(dest="command", required=True)

    replace = commands.add_parser("replace", help="replace one tile with another")
    replace.add_argument("find", type=int, help="tile to find")
    replace.add_argument("replace", type=int, help="tile to replace it with")

    resize = commands.add_parser("resize", help="remap tiles after the tileset changed width")
    resize.add_argument("tilecount", type=int, nargs="?", help="new tile count")
    resize.add_argument("columns", type=int, nargs="?", help="new number of columns")
    resize.add_argument("--from-image", type=Path, metavar="PNG",
                        help="measure tilecount and columns from the new tileset image")
    resize.add_argument("--set-source", action="store_true",
                        help="with --from-image, also point the tileset at that image")

    commands.add_parser("convert", help="write the map as Tiled JSON")
    return parser


def make_operation(args: argparse.Namespace, parser: argparse.ArgumentParser) -> Operation:
    if args.command == "replace":
        if args.find < 0 or args.replace < 0:
            parser.error("tile indexes must not be negative")
        return Replace(args.find, args.replace)

    if args.command == "resize":
        if args.from_image is None and (args.tilecount is None or args.columns is None):
            parser.error("resize needs TILECOUNT and COLUMNS, or --from-image")
        if args.from_image is not None and args.tilecount is not None:
            parser.error("give either TILECOUNT COLUMNS or --from-image, not both")
        if args.set_source and args.from_image is None:
            parser.error("--set-source only applies with --from-image")
        if args.tilecount is not None and (args.tilecount < 0 or args.columns <= 0):
            parser.error("tilecount must not be negative and columns must be positive")
        return Resize(args.tilecount, args.columns,
                      image_path=args.from_image, set_source=args.set_source,
                      map_dir=args.file.parent)

    return Convert()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    operation = make_operation(args, parser)

    try:
        tiled_map = TiledMap.load(args.file)
        shape = operation.apply(tiled_map)
        text = shape.render(tiled_map)
    except ET.ParseError as e:
        print(f"Error: '{args.file}' is not valid XML: {e}", file=sys.stderr)
        return 1
    except (OSError, TmxError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    destination = args.output or (args.file if args.in_place else None)
    if destination is None:
        sys.stdout.write(text)
        return 0

    try:
        destination.write_text(text, encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot write '{destination}': {e}", file=sys.stderr)
        return 1
    logger.info("wrote %s output to %s", shape.name, destination)
    return 0


if __name__ == "__main__":
    sys.exit(main())
