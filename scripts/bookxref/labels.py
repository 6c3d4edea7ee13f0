"""
Label parsing over pandoc's intermediate HTML.

pandoc has already numbered the sections (--number-sections) and kept the
label placeholders of figures, tables, equations and theorems as literal
text, e.g.

    <section id="intro" class="level1" data-number="1">
    <h1 data-number="1"><span class="header-section-number">1</span> Intro</h1>
    <img src="plot.png" alt="(#fig:plot) A plot." />
    <figcaption aria-hidden="true">(#fig:plot) A plot.</figcaption>

This module turns those markers into a reference table:

    {"fig:plot": "1.1", "intro": "1"}
"""

import re
from collections import namedtuple
from types import MappingProxyType

from bookxref.config import THEOREM_KINDS


# Label identifiers: (#fig:my-plot), (\#eq:a/b)
LABEL_ID = r"[-/A-Za-z0-9]+"

# Tag of a reusable text reference: (ref:caption-1)
REF_TAG = r"(\(ref:[-/A-Za-z0-9]+\))"

# Where reference text is defined, in the HTML and in the source
HTML_REF_LINK = "^<p>%s (.+)</p>$"
SOURCE_REF_LINK = "^%s (.+[^ ])$"

CHAPTER_HEADING = re.compile(r'^<h1(?![^>]*class="title)[ >]')
SECTION_NUMBER = re.compile(r'<span class="header-section-number">([.A-Z0-9]+)</span>')
HEADING_NUMBER = re.compile(
    r'^<h[1-6][^>]*><span class="header-section-number">([.A-Z0-9]+)</span>.+</h[1-6]>$'
)
SECTION_ID = re.compile(r'^<div id="([^"]+)" class="section ')
ATTRIBUTE_VALUE = re.compile(r'="[^"]*"')
PRE_OPEN = re.compile(r"<pre[\s>]")
CODE_SPAN = re.compile(r"<code[^>]*>.*?</code>")

# pandoc's HTML5 output → one marker vocabulary for every pandoc version
HTML5_TAGS = [
    (re.compile(r'<section id="([^"]+)" class="(level\d[^"]*)"'), r'<div id="\1" class="section \2"'),
    (re.compile(r"</section>"), "</div>"),
    (re.compile(r"<figcaption[^>]*>"), '<p class="caption">'),
    (re.compile(r"</figcaption>"), "</p>"),
]


ParsedLabels = namedtuple("ParsedLabels", ["figures", "sections", "ref_links"])


def label_kinds(theorem_kinds=THEOREM_KINDS):
    """All label kinds: fig, tab, eq, then the theorem abbreviations."""
    kinds = ["fig", "tab", "eq"]
    kinds.extend(k for k in theorem_kinds if k not in kinds)
    return kinds


def label_pattern(theorem_kinds=THEOREM_KINDS):
    """
    Regex for a label placeholder; label_of(match) is 'kind:id'.

    pandoc unescapes (\\#fig:x) to (#fig:x) in prose. Only math keeps the
    backslash, so (\\#...) is accepted for equations alone.
    """
    kinds = "|".join(re.escape(k) for k in label_kinds(theorem_kinds))
    return re.compile(r"\((?:#((?:%s):%s)|\\#(eq:%s))\)" % (kinds, LABEL_ID, LABEL_ID))


def label_of(match):
    return match.group(1) or match.group(2)


def clean_html_tags(lines):
    """Rewrite HTML5 sectioning and figure tags into their HTML4 forms."""
    cleaned = []
    for line in lines:
        for pattern, repl in HTML5_TAGS:
            line = pattern.sub(repl, line)
        cleaned.append(line)
    return cleaned


def strip_attribute_labels(line, pattern):
    """Drop label placeholders quoted inside attribute values (img alt)."""
    return ATTRIBUTE_VALUE.sub(lambda m: pattern.sub("", m.group(0)), line)


def strip_code(lines):
    """
    Blank out <code> spans and <pre> blocks; labels shown as examples
    there are not entities.
    """
    stripped = []
    in_pre = False
    for line in lines:
        text = ""
        while line:
            if in_pre:
                end = line.find("</pre>")
                if end < 0:
                    line = ""
                else:
                    line = line[end + len("</pre>"):]
                    in_pre = False
            else:
                start = PRE_OPEN.search(line)
                if start is None:
                    text += line
                    line = ""
                else:
                    text += line[:start.start()]
                    line = line[start.start():]
                    in_pre = True
        stripped.append(CODE_SPAN.sub("", text))
    return stripped


def parse_fig_labels(lines, global_numbering=False, theorem_kinds=THEOREM_KINDS):
    """
    Number every labelled entity in document order.

    Each kind has its own counter. Unless global_numbering, counters restart
    at every numbered chapter (<h1>) and numbers are prefixed with the
    chapter number, e.g. "2.3". Labels outside numbered chapters (front
    matter, unnumbered chapters) share one bare counter that never restarts.
    Only the first visible occurrence of a label counts.
    """
    pattern = label_pattern(theorem_kinds)
    figures = {}
    counters = {}
    bare_counters = {}
    chapter = None

    for line in strip_code(lines):
        if CHAPTER_HEADING.match(line):
            number = SECTION_NUMBER.search(line)
            chapter = number.group(1) if number else None
            if not global_numbering and chapter is not None:
                counters = {}

        for match in pattern.finditer(strip_attribute_labels(line, pattern)):
            label = label_of(match)
            if label in figures:
                continue
            kind = label.split(":", 1)[0]
            if global_numbering:
                counters[kind] = counters.get(kind, 0) + 1
                figures[label] = str(counters[kind])
            elif chapter is None:
                bare_counters[kind] = bare_counters.get(kind, 0) + 1
                figures[label] = str(bare_counters[kind])
            else:
                counters[kind] = counters.get(kind, 0) + 1
                figures[label] = f"{chapter}.{counters[kind]}"

    return figures


def parse_section_labels(lines):
    """Map section ids to their numbers ("intro" → "1", "methods" → "2.1")."""
    sections = {}
    for i, line in enumerate(lines):
        heading = HEADING_NUMBER.match(line)
        if not heading or i == 0:
            continue
        section = SECTION_ID.match(lines[i - 1])
        if section:
            sections[section.group(1)] = heading.group(1)
    return sections


def parse_ref_links(lines, template):
    """
    Collect text-reference definitions such as `(ref:cap) A long caption.`

    `template` is HTML_REF_LINK or SOURCE_REF_LINK. Returns (lines, links):
    a copy of lines with the definition lines blanked, and tag → text
    (first definition of a tag wins; later ones are reported).
    """
    pattern = re.compile(template % REF_TAG)
    content = list(lines)
    links = {}
    duplicates = []
    for i, line in enumerate(content):
        match = pattern.match(line)
        if match:
            tag = match.group(1)
            if tag in links:
                duplicates.append(tag)
            else:
                links[tag] = match.group(2)
            content[i] = ""
    if duplicates:
        print(
            f"  Warning: text reference(s) defined more than once, "
            f"keeping the first: {', '.join(dict.fromkeys(duplicates))}"
        )
    return content, links


def parse_labels(html_lines, global_numbering=False, theorem_kinds=THEOREM_KINDS):
    """Parse pandoc's HTML into figure, section and text-reference tables."""
    lines = clean_html_tags(html_lines)
    _, ref_links = parse_ref_links(lines, HTML_REF_LINK)
    return ParsedLabels(
        figures=parse_fig_labels(lines, global_numbering, theorem_kinds),
        sections=parse_section_labels(lines),
        ref_links=ref_links,
    )


def build_ref_table(figures, sections):
    """
    Merge figure and section labels into one read-only lookup.

    Typed labels come first, then section ids. The result is not meant to
    change after this point.
    """
    table = dict(figures)
    for label, number in sections.items():
        table.setdefault(label, number)
    return MappingProxyType(table)
