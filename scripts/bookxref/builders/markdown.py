"""
Markdown builder.

Produces a single merged markdown file with every cross-reference resolved.
Equations keep \\tag{} numbers and part/appendix headings stay as written,
so the result can be fed to other Markdown tools.
"""

from bookxref.builders.base import BaseBuilder


class MarkdownBuilder(BaseBuilder):
    format_name = "Markdown"
    extension = ".md"
    to_md = True

    def build(self):
        self.header()

        if not self.check_tool("pandoc"):
            return False

        merged = None
        try:
            merged = self.merge_sources()
            self.resolve_references(merged, self.output_file)
        finally:
            self.remove(merged)

        print(f"  ✓ {self.output_file}")
        return True
