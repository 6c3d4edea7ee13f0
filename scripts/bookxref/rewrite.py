"""
Rewrite label placeholders in the Markdown source.

Input markers (as written by the author):

    ![(\\#fig:plot) A plot.](plot.png)    label anchor in a caption
    See Figure \\@ref(fig:plot).          reference to a label
    (ref:cap) Some *reusable* text.      text-reference definition

All functions take a list of lines and return a new list; nothing here
reads files or keeps state between calls.
"""

import re

from bookxref.config import LABEL_NAMES, THEOREM_KINDS
from bookxref.labels import SOURCE_REF_LINK, parse_ref_links


# Numbered math environments pandoc leaves to MathJax
MATH_ENVS = ["equation", "align", "eqnarray", "gather"]

# Lines that may carry a caption label
CAPTION_LINE = re.compile(
    r'^(<p class="caption|<caption>|Table:|\\BeginKnitrBlock)|(!\[.*?\]\(.+?\))'
)
ALT_TEXT_LABEL = re.compile(r'"\(\\#(fig:[-/A-Za-z0-9]+)\)')
REF_MACRO = re.compile(r"(?<!`)\\@ref\(([-:/A-Za-z0-9]+)\)")
KNITR_BLOCK = re.compile(r"^\\BeginKnitrBlock\{[^}]+\}|\\EndKnitrBlock\{[^}]+\}$")
FENCE = re.compile(r"^\s*(`{3,}|~{3,})")

# Shown in place of a reference that does not resolve
BROKEN_REF = "<strong>??</strong>"


# ── Prose regions ──────────────────────────────────────────────────────


def prose_index(lines):
    """
    Indices of the lines outside fenced code blocks.

    A fence opens with three or more backticks or tildes and closes on a
    line holding only the same character, at least as many times.
    """
    index = []
    fence = None
    for i, line in enumerate(lines):
        match = FENCE.match(line)
        if fence is None:
            if match:
                fence = match.group(1)
            else:
                index.append(i)
        elif (
            match
            and line.strip() == match.group(1)
            and match.group(1)[0] == fence[0]
            and len(match.group(1)) >= len(fence)
        ):
            fence = None
    return index


def map_prose(lines, func):
    """Apply func to the prose lines only and splice the result back."""
    content = list(lines)
    index = prose_index(content)
    rewritten = func([content[i] for i in index])
    for i, line in zip(index, rewritten):
        content[i] = line
    return content


# ── Labels and references ──────────────────────────────────────────────


def label_marker(label):
    return "(\\#%s)" % label


def caption_prefix(label, number, theorem_kinds=THEOREM_KINDS, label_names=LABEL_NAMES):
    """
    What replaces a caption label: "Figure 2.3: " for figures and tables.
    Theorem environments number themselves, so they only get an anchor.
    """
    kind = label.split(":", 1)[0]
    if kind in theorem_kinds:
        return f'<span id="{label}"></span>'
    return f"{label_names.get(kind, '')}{number}: "


def ref_to_number(label, ref_table):
    """Look up a label; unresolved labels render as a visibly broken ref."""
    number = ref_table.get(label)
    return BROKEN_REF if number is None else number


def add_eq_numbers(lines, ref_table, to_md=False):
    """
    Turn (\\#eq:label) inside math environments into equation numbers.

    \\begin{env} and \\end{env} must fill their whole line. Many e-book
    readers do not render \\tag{}, so EPUB output gets \\qquad(n) instead.
    """
    ids = [label for label in ref_table if label.startswith("eq:")]
    content = list(lines)
    if not ids:
        return content

    envs = "|".join(MATH_ENVS)
    begin = re.compile(r"^\\begin\{(%s)\}$" % envs)
    end = re.compile(r"^\\end\{(%s)\}$" % envs)
    starts = [i for i, line in enumerate(content) if begin.match(line)]
    stops = [i for i, line in enumerate(content) if end.match(line)]

    for start in starts:
        stop = next((i for i in stops if i >= start), None)
        if stop is None:
            continue
        for i in range(start, stop + 1):
            for label in ids:
                marker = label_marker(label)
                if marker in content[i]:
                    number = ref_table[label]
                    tag = "\\tag{%s}" % number if to_md else "\\qquad(%s)" % number
                    content[i] = content[i].replace(marker, tag, 1)
                    break

    return content


def resolve_refs_md(lines, ref_table, to_md=False, theorem_kinds=THEOREM_KINDS,
                    label_names=LABEL_NAMES):
    """
    Resolve caption labels, equation labels and \\@ref() in prose lines.

    A caption label without a table entry stays in place silently; a
    \\@ref() without one becomes BROKEN_REF and is reported.
    """
    content = list(lines)
    labels = [label for label in ref_table if ":" in label]

    for i, line in enumerate(content):
        if not CAPTION_LINE.search(line):
            continue
        for label in labels:
            marker = label_marker(label)
            if marker not in line:
                continue
            prefix = caption_prefix(label, ref_table[label], theorem_kinds, label_names)
            if prefix.endswith(" "):
                # swallow the space the author put after the marker
                pattern = re.escape(marker) + r"[ \t]*"
            else:
                pattern = re.escape(marker)
            content[i] = re.sub(pattern, lambda m: prefix, line, count=1)
            break

    content = [ALT_TEXT_LABEL.sub('"', line) for line in content]
    content = add_eq_numbers(content, ref_table, to_md)

    missing = []

    def resolve(match):
        label = match.group(1)
        if label not in ref_table:
            missing.append(label)
        return ref_to_number(label, ref_table)

    content = [REF_MACRO.sub(resolve, line) for line in content]
    if missing:
        print(f"  Warning: label(s) not found: {', '.join(dict.fromkeys(missing))}")

    return content


def strip_block_markers(lines):
    r"""Remove \BeginKnitrBlock{..} / \EndKnitrBlock{..} wrappers."""
    return [KNITR_BLOCK.sub("", line) for line in lines]


# ── Text references ────────────────────────────────────────────────────


def restore_ref_links(lines, links):
    """
    Replace every (ref:tag) not inside inline code with its text.

    All tags go in one pass, so tags inside a replacement text stay as
    written.
    """
    if not links:
        return list(lines)
    tags = sorted(links, key=len, reverse=True)
    pattern = re.compile(r"(?<!`)(%s)" % "|".join(re.escape(tag) for tag in tags))
    return [pattern.sub(lambda m: links[m.group(1)], line) for line in lines]


def resolve_ref_links_epub(lines, html_links, to_md=False):
    """
    Resolve text references defined in the source.

    In to_md mode the text pandoc rendered (html_links) wins over the raw
    source text for tags defined in both.
    """
    content, links = parse_ref_links(lines, SOURCE_REF_LINK)
    if not links:
        return list(lines)
    if to_md:
        for tag in links:
            if tag in html_links:
                links[tag] = html_links[tag]
    return restore_ref_links(content, links)
