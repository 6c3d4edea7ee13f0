"""
EPUB-only structural fixes, applied to the prose lines of the source.

    # (PART) Basics {-}          removed (no parts in e-books)
    # (APPENDIX) Appendix {-}    → # Appendix {-}
    \\begin{equation}             → $$\\begin{equation}
"""

import re

from bookxref.converters import ConversionError
from bookxref.rewrite import MATH_ENVS, map_prose


PART_HEADING = re.compile(r"^# \(PART(\\\*)?\) .+ \{-\}$")
APPENDIX_HEADING = re.compile(r"^(# )\(APPENDIX\) (.+ \{-\})$")


def restore_part_epub(lines):
    """Blank out part dividers; line positions are kept."""
    return ["" if PART_HEADING.match(line) else line for line in lines]


def restore_appendix_epub(lines):
    """
    Turn the appendix divider into an ordinary unnumbered heading.

    Appendix chapters keep counting after the last chapter (no A, B, ...
    numbering) in e-books.
    """
    content = list(lines)
    found = [i for i, line in enumerate(content) if APPENDIX_HEADING.match(line)]
    if len(found) > 1:
        raise ConversionError("There must not be more than one appendix header")
    for i in found:
        content[i] = APPENDIX_HEADING.sub(r"\1\2", content[i])
    return content


def protect_math_env(lines):
    """Wrap bare math environments in $$ so pandoc does not drop them."""
    envs = MATH_ENVS + [env + "*" for env in MATH_ENVS]
    begins = {"\\begin{%s}" % env for env in envs}
    ends = {"\\end{%s}" % env for env in envs}
    content = []
    for line in lines:
        if line in begins:
            line = "$$" + line
        elif line in ends:
            line = line + "$$"
        content.append(line)
    return content


def normalize_epub(lines):
    """Apply all EPUB structural fixes to the prose lines."""

    def normalize(prose):
        prose = restore_part_epub(prose)
        prose = restore_appendix_epub(prose)
        return protect_math_env(prose)

    return map_prose(lines, normalize)
