"""
Base builder class for all output formats.

Subclasses implement `build()` and set `format_name` / `extension`.
Shared logic (merging chapters, the cross-reference pass, logging,
artifact resolution) lives here.
"""

import os
import shutil
from abc import ABC, abstractmethod

from bookxref.converters import ConversionError
from bookxref.pipeline import process_markdown
from bookxref.resolve import resolve_artifact, resolve_filters


class BaseBuilder(ABC):
    """
    Abstract base for format builders.

    Subclasses must define:
        format_name:  str   — human-readable name ("EPUB", "Markdown")
        extension:    str   — output file extension (".epub", ".md")
        to_md:        bool  — whether the cross-reference pass targets Markdown
        build():      method — the actual build logic
    """

    format_name = None  # Override in subclass
    extension = None    # Override in subclass
    to_md = False

    def __init__(self, config, book_dir, input_files, output_dir, verbose=False, **kwargs):
        self.config = config
        self.book_dir = book_dir
        self.input_files = input_files
        self.output_dir = output_dir
        self.verbose = verbose
        self.kwargs = kwargs

    # ── Output paths ───────────────────────────────────────

    @property
    def output_file(self):
        return os.path.join(self.output_dir, f"{self.config.prefix}{self.extension}")

    @property
    def merged_file(self):
        """All chapters in one file, unique per process."""
        return os.path.join(self.output_dir, f"{self.config.prefix}.{os.getpid()}.merged.md")

    # ── Logging ────────────────────────────────────────────

    def log(self, msg):
        if self.verbose:
            print(msg)

    def header(self):
        print(f"\n{'─' * 60}")
        print(f"  Building {self.format_name}: {self.config.title}")
        print(f"{'─' * 60}")

    # ── Artifact resolution (delegates to shared module) ───

    def resolve(self, filename):
        """Resolve an artifact filename for this book."""
        return resolve_artifact(self.book_dir, filename)

    def get_filters(self):
        """Resolve Lua filters listed in config."""
        return resolve_filters(self.book_dir, self.config.get("filters"))

    # ── Pandoc arguments ───────────────────────────────────

    def pandoc_args(self, extra_args=None):
        """Options shared by every pandoc run for this book."""
        args = self.config.metadata_args()
        args.extend(str(a) for a in self.config.get("pandoc_args", []))

        if extra_args:
            args.extend(extra_args)

        # Lua filters from config
        for f in self.get_filters():
            args.extend(["--lua-filter", f])

        return args

    # ── Source preparation ─────────────────────────────────

    def merge_sources(self):
        """Concatenate the chapter files into merged_file; returns its path."""
        chunks = []
        for path in self.input_files:
            with open(path, "r", encoding="utf-8") as f:
                chunks.append(f.read().rstrip("\n"))

        with open(self.merged_file, "w", encoding="utf-8") as f:
            f.write("\n\n".join(chunks) + "\n")

        self.log(f"  Input: {len(self.input_files)} files → {self.merged_file}")
        return self.merged_file

    def resolve_references(self, source, output):
        """Run the cross-reference pass on source, writing output."""
        self.log("  Resolving cross-references...")
        process_markdown(
            source,
            self.config.from_str,
            self.pandoc_args(),
            self.config.global_numbering,
            to_md=self.to_md,
            output=output,
            theorem_kinds=self.config.theorem_kinds,
            label_names=self.config.label_names,
            verbose=self.verbose,
        )

    def check_tool(self, name):
        """Check that a required external tool is on PATH."""
        if not shutil.which(name):
            print(f"  ✗ {name} not found on PATH")
            return False
        return True

    def remove(self, path):
        if path and os.path.exists(path):
            os.remove(path)

    def run(self):
        """build() with conversion errors reported instead of raised."""
        try:
            return self.build()
        except ConversionError as e:
            print(f"  ✗ {e}")
            return False

    # ── Abstract interface ─────────────────────────────────

    @abstractmethod
    def build(self):
        """
        Execute the build. Returns True on success; raises ConversionError
        when an external step fails.
        """
        ...
