"""
Cross-reference pipeline for one Markdown source file.

    pandoc → intermediate HTML → labels → reference table
           → rewrite source → EPUB structure fixes → write

The HTML is only a means to learn the numbers pandoc assigns; it never
outlives process_markdown().
"""

import os
from contextlib import contextmanager

from bookxref.config import LABEL_NAMES, THEOREM_KINDS
from bookxref.converters import pandoc_convert
from bookxref.labels import build_ref_table, parse_labels
from bookxref.normalize import normalize_epub
from bookxref.rewrite import (
    map_prose,
    resolve_ref_links_epub,
    resolve_refs_md,
    strip_block_markers,
)


# Always passed when producing the intermediate HTML
HTML_OPTIONS = ["--section-divs", "--mathjax", "--number-sections"]


def read_utf8(path):
    """Lines split on newlines only; form feeds and U+2028 stay in the text."""
    with open(path, "r", encoding="utf-8") as f:
        lines = f.read().split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def write_utf8(lines, path):
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def intermediate_path(input_file):
    """Per-process name for the HTML next to the input: ch1.1234.tmp.html"""
    return f"{os.path.splitext(input_file)[0]}.{os.getpid()}.tmp.html"


@contextmanager
def intermediate_html(input_file):
    """Yield the intermediate HTML path; the file is removed on exit."""
    path = intermediate_path(input_file)
    try:
        yield path
    finally:
        if os.path.exists(path):
            os.remove(path)


def process_markdown(input_file, from_format, pandoc_args, global_numbering,
                     to_md=False, content=None, output=None,
                     theorem_kinds=THEOREM_KINDS, label_names=LABEL_NAMES,
                     verbose=False):
    """
    Resolve cross-references in a Markdown file.

    Args:
        input_file:       Markdown file pandoc converts to HTML
        from_format:      pandoc --from string
        pandoc_args:      extra pandoc options for the HTML conversion
        global_numbering: number figures etc. across the book, not per chapter
        to_md:            target rewritten Markdown instead of EPUB
        content:          source lines (read from input_file when None)
        output:           where to write; None returns the lines instead

    Raises ConversionError when pandoc fails.
    """
    if content is None:
        content = read_utf8(input_file)

    with intermediate_html(input_file) as html_path:
        pandoc_convert(
            input_file, "html", from_format, html_path,
            citeproc=True,
            options=list(pandoc_args or []) + HTML_OPTIONS,
            verbose=verbose,
        )
        html = read_utf8(html_path)

    parsed = parse_labels(html, global_numbering, theorem_kinds)
    ref_table = build_ref_table(parsed.figures, parsed.sections)
    if verbose:
        print(f"  Labels: {len(parsed.figures)} numbered, {len(parsed.sections)} sections")

    content = map_prose(
        content,
        lambda prose: resolve_refs_md(prose, ref_table, to_md, theorem_kinds, label_names),
    )
    if to_md:
        content = strip_block_markers(content)
    content = resolve_ref_links_epub(content, parsed.ref_links, to_md)
    if not to_md:
        content = normalize_epub(content)

    if output is None:
        return content
    write_utf8(content, output)
