#!/usr/bin/env python3
"""
Unified build script for bookxref.

Builds an EPUB (or a merged Markdown file) from a multi-chapter book with
figure, table, equation and section references resolved, runs the
cross-reference pass on a single file, and wraps calibre.

Usage:
    python build.py linear --epub               Build epub
    python build.py linear --all                Build epub + markdown
    python build.py process ch1.md -o out.md    Resolve references in one file
    python build.py process ch1.md --to-md      ... targeting Markdown, to stdout
    python build.py calibre book.epub mobi      Convert with ebook-convert

Requires: pandoc, PyYAML
Optional: calibre (ebook-convert)
"""

import os
import sys
import argparse
import traceback

# Ensure bookxref is importable from the scripts/ directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from bookxref.config import BookConfig, ConfigError
from bookxref.converters import ConversionError, calibre
from bookxref.pipeline import process_markdown
from bookxref.resolve import find_book_dir, assemble_inputs
from bookxref.builders import BUILDERS, DEFAULT_FORMATS


# ── Resolve book ───────────────────────────────────────────────────────


def resolve_book(identifier):
    """Find book directory, load config. Exits on failure."""
    project_root = os.getcwd()
    book_dir = find_book_dir(identifier, project_root)

    if not book_dir:
        print(f"Error: Could not find book '{identifier}'")
        print(f"  Searched in: {os.path.join(project_root, 'manuscript')}")
        print("  Tip: Run from the project root, or pass a direct path.")
        sys.exit(1)

    try:
        config = BookConfig.load(book_dir)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    return book_dir, config


# ── Build command ──────────────────────────────────────────────────────


def cmd_build(args):
    """Build one or more output formats."""
    book_dir, config = resolve_book(args.book)

    if args.all:
        formats = list(DEFAULT_FORMATS)
    else:
        formats = [fmt for fmt in BUILDERS if getattr(args, fmt, False)]

    # Default to --all if nothing specified
    if not formats:
        formats = list(DEFAULT_FORMATS)

    config.summary()

    input_files = assemble_inputs(book_dir)
    if not input_files:
        print(f"Error: No markdown files found in {book_dir}")
        sys.exit(1)

    output_dir = args.output_dir or os.path.join(os.getcwd(), "output")
    os.makedirs(output_dir, exist_ok=True)
    print(f"  Output: {output_dir}")

    results = {}
    for fmt in formats:
        builder = BUILDERS[fmt](
            config=config,
            book_dir=book_dir,
            input_files=input_files,
            output_dir=output_dir,
            verbose=args.verbose,
        )
        results[fmt] = builder.run()

    # Summary
    print(f"\n{'─' * 60}")
    failed = [fmt for fmt, ok in results.items() if not ok]
    if failed:
        print(f"  Done with errors: {', '.join(failed)} failed")
        sys.exit(1)
    else:
        print(f"  Done. {len(results)} format(s) built successfully.")


# ── Process command ────────────────────────────────────────────────────


def cmd_process(args):
    """Resolve cross-references in a single Markdown file."""
    if not os.path.exists(args.file):
        print(f"Error: {args.file} not found")
        sys.exit(1)

    try:
        content = process_markdown(
            args.file,
            args.from_format,
            args.pandoc_arg or [],
            args.global_numbering,
            to_md=args.to_md,
            output=args.output,
            verbose=args.verbose,
        )
    except ConversionError as e:
        print(f"  ✗ {e}")
        sys.exit(1)

    if args.output:
        print(f"  ✓ {args.output}")
    else:
        sys.stdout.write("\n".join(content) + "\n")


# ── Calibre command ────────────────────────────────────────────────────


def cmd_calibre(args):
    """Convert an e-book with calibre."""
    try:
        output = calibre(args.input, args.output, args.options)
    except ConversionError as e:
        print(f"  ✗ {e}")
        sys.exit(1)
    print(f"  ✓ {output}")


# ── Argument Parser ────────────────────────────────────────────────────


def build_parser():
    parser = argparse.ArgumentParser(
        description="Markdown book to EPUB with cross-references",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s example --epub                 Build epub
  %(prog)s example --all                  Build epub and markdown
  %(prog)s process ch1.md -o ch1.out.md   Resolve references in one file
  %(prog)s calibre book.epub azw3         Convert with calibre
        """,
    )

    sub = parser.add_subparsers(dest="command")

    # ── build (default when no subcommand) ─────────────────
    build_p = sub.add_parser("build", help="Build output formats (default)")
    build_p.add_argument("book", help="Book number, keyword, or path")
    fmt = build_p.add_argument_group("output formats")
    fmt.add_argument("--epub", action="store_true", help="Build EPUB")
    fmt.add_argument("--md", action="store_true", help="Build merged Markdown")
    fmt.add_argument("--all", action="store_true", help="Build epub + md")
    opts = build_p.add_argument_group("options")
    opts.add_argument("--output-dir", help="Override output directory")
    opts.add_argument("--verbose", "-v", action="store_true")

    # ── process ────────────────────────────────────────────
    proc_p = sub.add_parser("process", help="Resolve references in one file")
    proc_p.add_argument("file", help="Markdown source file")
    proc_p.add_argument("-o", "--output", help="Output file (default: stdout)")
    proc_p.add_argument("--to-md", action="store_true", help="Target Markdown, not EPUB")
    proc_p.add_argument(
        "--global-numbering",
        action="store_true",
        help="Number figures/tables across the book instead of per chapter",
    )
    proc_p.add_argument(
        "--from",
        dest="from_format",
        default="markdown+smart",
        help="pandoc input format (default: %(default)s)",
    )
    proc_p.add_argument(
        "--pandoc-arg", action="append", help="Extra pandoc option (repeatable)"
    )
    proc_p.add_argument("--verbose", "-v", action="store_true")

    # ── calibre ────────────────────────────────────────────
    cal_p = sub.add_parser("calibre", help="Convert an e-book with ebook-convert")
    cal_p.add_argument("input", help="Input e-book")
    cal_p.add_argument("output", help="Output filename or bare extension (mobi)")
    cal_p.add_argument("--options", default="", help="Extra ebook-convert options")

    return parser


# ── Main ───────────────────────────────────────────────────────────────


def main(argv=None):
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv

    # Allow bare "build.py linear --epub" without the "build" subcommand
    known_commands = {"build", "process", "calibre"}
    if argv and argv[0] not in known_commands and not argv[0].startswith("-"):
        argv = ["build"] + argv
    args = parser.parse_args(argv)

    dispatch = {
        "build": cmd_build,
        "process": cmd_process,
        "calibre": cmd_calibre,
    }

    handler = dispatch.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(1)
    except Exception as e:
        log_path = "build_error.log"
        with open(log_path, "w") as f:
            traceback.print_exc(file=f)
        print(f"\nUnexpected error: {e}")
        print(f"Full traceback written to {log_path}")
        sys.exit(1)
