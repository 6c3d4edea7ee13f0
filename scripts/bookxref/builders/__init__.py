from bookxref.builders.epub import EpubBuilder
from bookxref.builders.markdown import MarkdownBuilder

BUILDERS = {
    "epub": EpubBuilder,
    "md": MarkdownBuilder,
}

# --all builds these
DEFAULT_FORMATS = ["epub", "md"]
