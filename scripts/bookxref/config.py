"""
Book configuration: load, validate, and provide defaults for book.yaml.
"""

import os
import sys

try:
    import yaml
except ImportError:
    print("Error: PyYAML is required. Install with: pip install pyyaml")
    sys.exit(1)


# Fields required in every book.yaml
REQUIRED_FIELDS = ["title", "author", "prefix"]

# Theorem-like environments: label abbreviation → environment name
THEOREM_KINDS = {
    "thm": "theorem",
    "lem": "lemma",
    "cor": "corollary",
    "prp": "proposition",
    "cnj": "conjecture",
    "def": "definition",
    "exm": "example",
    "exr": "exercise",
    "hyp": "hypothesis",
}

# Visible prefix put in front of a resolved number
LABEL_NAMES = {
    "fig": "Figure ",
    "tab": "Table ",
    "eq": "Equation ",
    "thm": "Theorem ",
    "lem": "Lemma ",
    "cor": "Corollary ",
    "prp": "Proposition ",
    "cnj": "Conjecture ",
    "def": "Definition ",
    "exm": "Example ",
    "exr": "Exercise ",
    "hyp": "Hypothesis ",
}

# Defaults applied if missing
DEFAULTS = {
    "lang": "en-US",
    "date": "",
    "markdown_extensions": "fenced_divs+native_divs",
    "filters": [],
    "pandoc_args": [],
    "number_sections": True,
    "global_numbering": None,
    "theorem_kinds": {},
    "label_names": {},
    "epub": {},
}

# Defaults within the epub sub-config
EPUB_DEFAULTS = {
    "version": "epub3",
    "toc": False,
    "toc_depth": 3,
    "css": [],
    "cover": None,
    "metadata": None,
    "chapter_level": 1,
    "template": "default",
    "calibre": [],
    "calibre_options": "",
}

EPUB_VERSIONS = ["epub3", "epub", "epub2"]


class ConfigError(Exception):
    """Raised when book.yaml is missing or invalid."""
    pass


class BookConfig:
    """
    Loaded, validated book configuration.

    Usage:
        config = BookConfig.load(book_dir)
        config.title              # "Linear Models"
        config.epub["version"]    # "epub3"
        config.global_numbering   # False when sections are numbered
    """

    def __init__(self, data, book_dir):
        self._data = data
        self.book_dir = book_dir

    @classmethod
    def load(cls, book_dir):
        """Load and validate book.yaml from a book directory."""
        yaml_path = os.path.join(book_dir, "book.yaml")
        if not os.path.exists(yaml_path):
            raise ConfigError(f"No book.yaml found in {book_dir}")

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data, book_dir)

    @classmethod
    def from_dict(cls, data, book_dir):
        """Validate a parsed mapping and fill in defaults."""
        if not isinstance(data, dict):
            raise ConfigError(f"book.yaml must be a YAML mapping, got {type(data).__name__}")

        # Validate required fields
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        if missing:
            raise ConfigError(
                f"book.yaml missing required fields: {', '.join(missing)}"
            )

        # Apply top-level defaults
        for key, default in DEFAULTS.items():
            data.setdefault(key, default if not isinstance(default, (list, dict)) else type(default)(default))

        if data["epub"] is None:
            data["epub"] = {}
        for key, default in EPUB_DEFAULTS.items():
            data["epub"].setdefault(key, default)

        if data["epub"]["version"] not in EPUB_VERSIONS:
            raise ConfigError(
                f"epub.version must be one of {', '.join(EPUB_VERSIONS)}, "
                f"got '{data['epub']['version']}'"
            )

        # Figure numbers need section numbers unless numbering is global
        if data["global_numbering"] is None:
            data["global_numbering"] = not data["number_sections"]

        for key in ["theorem_kinds", "label_names", "pandoc_args"]:
            expected = list if key == "pandoc_args" else dict
            if not isinstance(data[key], expected):
                raise ConfigError(f"'{key}' must be a {expected.__name__}")

        data["theorem_kinds"] = {**THEOREM_KINDS, **data["theorem_kinds"]}
        data["label_names"] = {**LABEL_NAMES, **data["label_names"]}

        return cls(data, book_dir)

    # ── Attribute access ───────────────────────────────────

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"BookConfig has no field '{name}'")

    def get(self, key, default=None):
        return self._data.get(key, default)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    # ── Convenience ────────────────────────────────────────

    @property
    def from_str(self):
        """The pandoc --from string including extensions."""
        return f"markdown+smart+{self.markdown_extensions}"

    @property
    def css_files(self):
        """epub.css as a list (a single string is allowed in YAML)."""
        css = self.epub.get("css") or []
        return [css] if isinstance(css, str) else list(css)

    def metadata_args(self):
        """Build pandoc --metadata arguments list."""
        args = []
        for key in ["title", "author", "lang", "date"]:
            value = self.get(key)
            if value:
                args.extend(["--metadata", f"{key}={value}"])
        return args

    def summary(self):
        """Print a short config summary."""
        print(f"\n  Book:   {self.title}")
        print(f"  Author: {self.author}")
        print(f"  Source: {self.book_dir}")
        numbering = "global" if self.global_numbering else "per chapter"
        print(f"  Labels: numbered {numbering}")
