"""
Wrappers around the external tools the pipeline drives.

    pandoc         markdown → intermediate HTML, markdown → EPUB
    ebook-convert  EPUB → other e-book formats (calibre)

Plus epub_css(), which inlines stylesheet images before pandoc sees them.
"""

import base64
import mimetypes
import os
import re
import shlex
import subprocess
import tempfile


class ConversionError(Exception):
    """Raised when an external conversion step fails."""
    pass


def with_ext(path, ext):
    """Replace the extension of path ('book.epub', 'mobi' → 'book.mobi')."""
    return f"{os.path.splitext(path)[0]}.{ext.lstrip('.')}"


def run_tool(cmd, label="Command", verbose=False):
    """
    Run an external command. Raises ConversionError on failure.

    stderr is captured unless verbose, and the first lines of it are
    folded into the error message.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=not verbose,
            text=True,
        )
    except FileNotFoundError:
        raise ConversionError(f"{cmd[0]} not found on PATH")

    if result.returncode != 0:
        msg = f"{label} failed (exit {result.returncode})"
        if result.stderr:
            details = result.stderr.strip().splitlines()[:20]
            msg += "\n" + "\n".join(f"    {line}" for line in details)
        raise ConversionError(msg)
    return result


# ── pandoc ─────────────────────────────────────────────────────────────


def pandoc_convert(input_file, to, from_format, output, citeproc=False, options=None, verbose=False):
    """
    Convert input_file with pandoc.

    The step only counts as successful when pandoc exits cleanly *and*
    leaves a file at `output`.
    """
    cmd = ["pandoc", input_file, "--to", to, "--from", from_format, "--output", output]
    if citeproc:
        cmd.append("--citeproc")
    cmd.extend(options or [])

    if verbose:
        print(f"  $ {' '.join(shlex.quote(c) for c in cmd)}")

    run_tool(cmd, f"pandoc ({to})", verbose=verbose)

    if not os.path.exists(output):
        raise ConversionError(f"pandoc did not produce {output}")
    return output


# ── calibre ────────────────────────────────────────────────────────────


def calibre(input_file, output, options=""):
    """
    Convert an e-book with calibre's ebook-convert.

    `output` is either a filename or a bare extension; calibre('book.epub',
    'mobi') writes book.mobi. `options` is a string of extra command-line
    options (or a list of them).

    Returns the output filename.
    """
    if "." not in output:
        output = with_ext(input_file, output)
    if os.path.abspath(input_file) == os.path.abspath(output):
        raise ConversionError("input and output filenames are the same")

    if os.path.exists(output):
        os.remove(output)

    if isinstance(options, str):
        options = shlex.split(options)
    cmd = ["ebook-convert", input_file, output] + list(options)

    try:
        subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        raise ConversionError("ebook-convert not found (install calibre)")

    if not os.path.exists(output):
        raise ConversionError(f"Failed to convert {input_file} to {output}")
    return output


# ── Stylesheets ────────────────────────────────────────────────────────

CSS_URL = re.compile(r"""url\(\s*(['"]?)([^'")]+)\1\s*\)""")


def _inline_images(css, css_dir):
    """Replace url(local-image) with a base64 data URI."""

    def repl(match):
        target = match.group(2)
        if re.match(r"^(data:|https?:|#)", target):
            return match.group(0)
        path = os.path.join(css_dir, target)
        if not os.path.isfile(path):
            return match.group(0)
        mime = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            encoded = base64.b64encode(f.read()).decode("ascii")
        return f'url("data:{mime};base64,{encoded}")'

    return CSS_URL.sub(repl, css)


def epub_css(files, output=None):
    """
    Merge stylesheets into one file with their images embedded.

    pandoc copies the stylesheet into the EPUB but not the images it
    references, so those are inlined here. The caller owns (and deletes)
    the returned file.
    """
    chunks = []
    for css_path in files:
        with open(css_path, "r", encoding="utf-8") as f:
            css = f.read()
        chunks.append(_inline_images(css, os.path.dirname(os.path.abspath(css_path))))

    if output is None:
        fd, output = tempfile.mkstemp(prefix="epub", suffix=".css")
        os.close(fd)

    with open(output, "w", encoding="utf-8") as f:
        f.write("\n".join(chunks))
    return output
