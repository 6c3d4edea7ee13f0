"""
bookxref — Markdown-to-EPUB book toolchain with cross-reference resolution.

Public API:
    from bookxref.config import BookConfig
    from bookxref.resolve import find_book_dir, assemble_inputs
    from bookxref.pipeline import process_markdown
    from bookxref.converters import calibre, ConversionError
    from bookxref.builders import BUILDERS, DEFAULT_FORMATS
"""
