"""
EPUB builder.

Pipeline: merge chapters → resolve cross-references (EPUB mode)
          → pandoc → epub → calibre (optional extra formats).
"""

from bookxref.builders.base import BaseBuilder
from bookxref.converters import calibre, epub_css, pandoc_convert


class EpubBuilder(BaseBuilder):
    format_name = "EPUB"
    extension = ".epub"

    def epub_args(self, css_path=None):
        """pandoc options for the final EPUB conversion."""
        epub = self.config.epub
        args = []

        if self.config.number_sections:
            args.append("--number-sections")

        if epub.get("toc"):
            args.append("--toc")
            args.extend(["--toc-depth", str(epub.get("toc_depth", 3))])

        cover_path = self.resolve(epub.get("cover"))
        if cover_path:
            args.extend(["--epub-cover-image", cover_path])
            self.log(f"  Cover: {cover_path}")
        elif epub.get("cover"):
            print(f"  Warning: cover '{epub['cover']}' not found")

        metadata_path = self.resolve(epub.get("metadata"))
        if metadata_path:
            args.extend(["--epub-metadata", metadata_path])

        template = epub.get("template", "default")
        if template and template != "default":
            args.extend(["--template", self.resolve(template) or template])

        chapter_level = epub.get("chapter_level", 1)
        if chapter_level != 1:
            args.extend(["--epub-chapter-level", str(chapter_level)])

        if css_path:
            args.extend(["--css", css_path])

        return self.pandoc_args(args)

    def stylesheets(self):
        found = []
        for name in self.config.css_files:
            path = self.resolve(name)
            if path:
                found.append(path)
            else:
                print(f"  Warning: stylesheet '{name}' not found")
        return found

    def build(self):
        self.header()

        if not self.check_tool("pandoc"):
            return False

        epub = self.config.epub
        merged = None
        css_path = None

        try:
            merged = self.merge_sources()
            self.resolve_references(merged, merged)

            css_files = self.stylesheets()
            if css_files:
                css_path = epub_css(css_files)
                self.log(f"  CSS:   {', '.join(css_files)}")

            pandoc_convert(
                merged,
                epub.get("version", "epub3"),
                self.config.from_str,
                self.output_file,
                options=self.epub_args(css_path),
                verbose=self.verbose,
            )
            print(f"  ✓ {self.output_file}")

            # ── Extra e-book formats ───────────────────────
            for fmt in epub.get("calibre") or []:
                self.log(f"  Converting to {fmt} with calibre...")
                out = calibre(self.output_file, fmt, epub.get("calibre_options", ""))
                print(f"  ✓ {out}")
        finally:
            self.remove(merged)
            self.remove(css_path)

        return True
