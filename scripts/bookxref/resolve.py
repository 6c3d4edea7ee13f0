"""
Book resolution, chapter assembly, and artifact lookup.

A book lives in manuscript/<n>_<name>/ with a book.yaml and its chapters in
front/, chapters/ and back/ (or directly in the book directory).
"""

import os
import re
import glob

import yaml


def natural_sort_key(s):
    """Sort strings with embedded numbers naturally (2.md before 10.md)."""
    return [
        int(text) if text.isdigit() else text.lower()
        for text in re.split(r"(\d+)", s)
    ]


def _yaml_title(book_path):
    yaml_path = os.path.join(book_path, "book.yaml")
    if not os.path.exists(yaml_path):
        return ""
    try:
        with open(yaml_path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return ""
    if not isinstance(cfg, dict):
        return ""
    return str(cfg.get("title") or "")


def find_book_dir(identifier, project_root):
    """
    Resolve a book identifier to its manuscript directory.

    Accepts:
        - Direct path:  manuscript/2_linear_models
        - Number:       2         (matches "2_..." prefix)
        - Keyword:      linear    (matches dir name or YAML title)

    Returns: absolute path to the book directory, or None.
    """
    manuscript_root = os.path.join(project_root, "manuscript")

    # Direct path (absolute or relative)
    for candidate in [identifier, os.path.join(project_root, identifier)]:
        if os.path.isdir(candidate) and os.path.exists(
            os.path.join(candidate, "book.yaml")
        ):
            return os.path.abspath(candidate)

    if not os.path.isdir(manuscript_root):
        return None

    identifier_lower = identifier.lower()

    for entry in sorted(os.listdir(manuscript_root)):
        book_path = os.path.join(manuscript_root, entry)
        if not os.path.isdir(book_path):
            continue

        match = re.match(r"^(\d+)_", entry)
        if match and match.group(1) == identifier:
            return book_path

        if identifier_lower in entry.lower():
            return book_path

        if identifier_lower in _yaml_title(book_path).lower():
            return book_path

    return None


def get_section_files(book_dir, section):
    """Get sorted markdown files from a section subdirectory."""
    section_dir = os.path.join(book_dir, section)
    if not os.path.isdir(section_dir):
        return []
    files = glob.glob(os.path.join(section_dir, "*.md"))
    files.sort(key=natural_sort_key)
    return files


def assemble_inputs(book_dir):
    """
    Assemble input files in book order: front → chapters → back.

    Falls back to *.md in the book root if no subdirectories exist.
    """
    files = (
        get_section_files(book_dir, "front")
        + get_section_files(book_dir, "chapters")
        + get_section_files(book_dir, "back")
    )

    # Fallback: flat layout
    if not files:
        files = glob.glob(os.path.join(book_dir, "*.md"))
        files.sort(key=natural_sort_key)

    return files


def resolve_artifact(book_dir, filename):
    """
    Resolve an artifact filename (stylesheet, cover, Lua filter) to a path.

    Search order (first match wins):
        1. book artifacts/    (per-book, e.g. cover.png)
        2. repo artifacts/    (shared across books, e.g. epub.css)
        3. the book directory itself

    Returns: absolute path or None.
    """
    if not filename:
        return None

    repo_root = os.path.dirname(os.path.dirname(book_dir))
    for path in [
        os.path.join(book_dir, "artifacts", filename),
        os.path.join(repo_root, "artifacts", filename),
        os.path.join(book_dir, filename),
    ]:
        if os.path.exists(path):
            return os.path.abspath(path)

    return None


def resolve_filters(book_dir, filter_names):
    """Resolve a list of Lua filter filenames to paths. Warns on missing."""
    filters = []
    for name in (filter_names or []):
        path = resolve_artifact(book_dir, name)
        if path:
            filters.append(path)
        else:
            print(f"  Warning: filter '{name}' not found in artifacts/")
    return filters
