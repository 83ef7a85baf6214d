"""Command line entry point: ``cg-fusion [options]``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .config import PLATFORMS, FusionOptions
from .errors import CgFusionError
from .processing import Candidate, Decision, run

_ANSWERS = {
    "i": Decision.INCLUDE_ITEM,
    "e": Decision.EXCLUDE_ITEM,
    "a": Decision.INCLUDE_ALL_ITEMS_OF_IMPL_BLOCK,
    "x": Decision.EXCLUDE_ALL_ITEMS_OF_IMPL_BLOCK,
    "q": Decision.QUIT,
}


# ---------------------------------------------------------------------------
# CLI arguments
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="cg-fusion",
        description="Fuse a Rust challenge and its local libraries into one source file",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--manifest-path", "-m",
        type=Path,
        default=Path("Cargo.toml"),
        help="Path to the Cargo.toml of the challenge (default: Cargo.toml)",
    )
    parser.add_argument(
        "--input", "-i",
        default="main",
        help="Binary target to fuse; 'main' selects src/main.rs (default: main)",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output file, '-' for stdout (default: src/bin/fusion_of_<package>.rs)",
    )
    parser.add_argument("--platform", choices=PLATFORMS, default="codingame")
    parser.add_argument(
        "--other-supported-crates",
        nargs="*",
        default=[],
        help="Crates the target platform supports, with '--platform other'",
    )
    parser.add_argument("--force", action="store_true",
                        help="Ignore unsupported and undeclared dependencies of local libraries")
    parser.add_argument("--glob-expansion-max-attempts", type=int, default=5)
    all_items = parser.add_mutually_exclusive_group()
    all_items.add_argument("--process-all-impl-items", dest="process_all_impl_items",
                           action="store_const", const=True, default=None,
                           help="Include every impl item not decided otherwise")
    all_items.add_argument("--skip-all-impl-items", dest="process_all_impl_items",
                           action="store_const", const=False,
                           help="Exclude every impl item not decided otherwise")
    parser.add_argument("--include-impl-item", action="append", default=[],
                        metavar="NAME", help="'name', 'name@impl block' or '*@impl block'")
    parser.add_argument("--exclude-impl-item", action="append", default=[], metavar="NAME")
    parser.add_argument("--include-impl-block", action="append", default=[], metavar="BLOCK")
    parser.add_argument("--exclude-impl-block", action="append", default=[], metavar="BLOCK")
    parser.add_argument("--impl-item-toml", type=Path, default=None,
                        help="TOML file with [impl_items] and [impl_blocks] include/exclude lists")
    parser.add_argument("--strip-doc-comments", action="store_true")
    parser.add_argument("--no-dialog", action="store_true",
                        help="Fail instead of asking about undecided impl items")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser.parse_args(argv)


def options_from_args(args) -> FusionOptions:
    return FusionOptions(
        manifest_path=args.manifest_path,
        input=args.input,
        platform=args.platform,
        other_supported_crates=list(args.other_supported_crates),
        force=args.force,
        glob_expansion_max_attempts=args.glob_expansion_max_attempts,
        process_all_impl_items=args.process_all_impl_items,
        include_impl_items=args.include_impl_item,
        exclude_impl_items=args.exclude_impl_item,
        include_impl_blocks=args.include_impl_block,
        exclude_impl_blocks=args.exclude_impl_block,
        impl_item_toml=args.impl_item_toml,
        strip_doc_comments=args.strip_doc_comments,
        verbose=args.verbose,
    )


# ---------------------------------------------------------------------------
# Impl item dialog
# ---------------------------------------------------------------------------

def prompt_oracle(candidate: Candidate) -> Decision:
    """Ask on the terminal whether to keep ``candidate``."""
    print(f"\nInclude '{candidate.display_name}' in the fused challenge?")
    if candidate.possible_usage:
        print("  Possibly used by:")
        for usage in candidate.possible_usage:
            print(f"    {usage}")
    else:
        print("  No possible usage found.")
    while True:
        answer = input("  [i]nclude, [e]xclude, include [a]ll of impl block, "
                       "e[x]clude all of impl block, [q]uit: ").strip().lower()
        if answer[:1] in _ANSWERS:
            return _ANSWERS[answer[:1]]
        print("  Please answer i, e, a, x or q.")


def _print_error(error: BaseException) -> None:
    print(f"ERROR: {error}", file=sys.stderr)
    cause = error.__cause__
    while cause is not None:
        print(f"  caused by: {cause}", file=sys.stderr)
        cause = cause.__cause__


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        options = options_from_args(args)
    except ValueError as e:
        _print_error(e)
        return 2
    try:
        fused = run(options, oracle=None if args.no_dialog else prompt_oracle)
        output = fused.render()
        challenge = fused.tree.local_package(0)
    except CgFusionError as e:
        _print_error(e)
        return 1

    if args.output == "-":
        sys.stdout.write(output)
        return 0
    if args.output is not None:
        target = Path(args.output)
    else:
        target = challenge.root / "src" / "bin" / f"fusion_of_{challenge.name}.rs"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(output, encoding="utf8")
    if options.verbose:
        print(f"Fused challenge written to {target}")
    return 0
