#!/usr/bin/env python3
"""
Render one creature from bestiary JSON files as a plain-text stat block.

    render_bestiary.py data/bestiary-mm.json data/template.json --name "Goblin Boss"
    render_bestiary.py bestiary.json --name "Bestial Spirit" --variant Land --spell-level 4 --json

Exit codes: 0 rendered, 1 creature not found, 2 unknown variant.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from bestiary.config import configure_logging
from bestiary.document import render_text
from bestiary.exceptions import InvalidRequestedVariant
from bestiary.index import BestiaryIndex
from bestiary.pipeline import resolve_and_render
from bestiary.storage_api import RemoteLookups, StorageAPI
from bestiary.templates import chain_lookups


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve and render a creature from bestiary JSON files."
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Bestiary ({\"monster\": [...]}) and template ({\"monsterTemplate\": [...]}) files.",
    )
    parser.add_argument("--name", required=True, help="Creature name (case-insensitive).")
    parser.add_argument("--source", default="", help="Source abbreviation. Any source if omitted.")
    parser.add_argument("--variant", default=None, help="Version to render for creatures with variants.")
    parser.add_argument("--spell-level", type=int, default=None, help="Spell level for summoned creatures.")
    parser.add_argument("--json", action="store_true", help="Print the document as JSON.")
    parser.add_argument(
        "--base-url",
        default=os.getenv("STORAGE_API_BASE", ""),
        help="Remote record store used for missing bases and templates. Defaults to STORAGE_API_BASE.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    # Mirror app behavior by loading .env in the current repo/project directory.
    load_dotenv(find_dotenv(usecwd=True), override=False)

    args = _build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)

    index = BestiaryIndex.from_paths(args.files)
    lookups = index.lookups()
    if args.base_url:
        lookups = chain_lookups(lookups, RemoteLookups(StorageAPI(args.base_url)))

    record = lookups.find(args.name, args.source)
    if record is None:
        where = f" ({args.source})" if args.source else ""
        print(f"Creature not found: {args.name}{where}", file=sys.stderr)
        return 1

    try:
        document = resolve_and_render(
            record,
            lookups,
            variant_name=args.variant,
            spell_level=args.spell_level,
        )
    except InvalidRequestedVariant as exc:
        print(f"{exc}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_text(document))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
