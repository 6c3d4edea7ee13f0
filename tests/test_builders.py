import os

import pytest

from bookxref import pipeline
from bookxref.builders import BUILDERS, base
from bookxref.builders import epub as epub_builder
from bookxref.config import BookConfig
from bookxref.converters import ConversionError
from bookxref.resolve import assemble_inputs, find_book_dir, resolve_artifact


HTML = """\
<section id="intro" class="level1" data-number="1">
<h1 data-number="1"><span class="header-section-number">1</span> Intro</h1>
<p class="caption">(#fig:a) A.</p>
</section>
<section id="more" class="level1" data-number="2">
<h1 data-number="2"><span class="header-section-number">2</span> More</h1>
</section>
"""


def write(path, text):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


@pytest.fixture
def project(tmp_path):
    book = tmp_path / "manuscript" / "2_linear_models"
    write(str(book / "book.yaml"),
          "title: Linear Models\nauthor: A. Author\nprefix: linear\n"
          "epub:\n  css: epub.css\n  calibre: [mobi]\n")
    write(str(book / "chapters" / "10_more.md"), "# More {#more}\n\nBack to \\@ref(intro).\n")
    write(str(book / "chapters" / "2_intro.md"), "# Intro {#intro}\n\n![(\\#fig:a) A.](a.png)\n")
    write(str(tmp_path / "artifacts" / "epub.css"), "body { margin: 0; }\n")
    return tmp_path


def html_pandoc(input_file, to, from_format, output, citeproc=False, options=None, verbose=False):
    write(output, HTML)
    return output


def test_find_book_dir(project):
    root = str(project)
    book = os.path.join(root, "manuscript", "2_linear_models")
    assert find_book_dir("2", root) == book
    assert find_book_dir("linear", root) == book
    assert find_book_dir("Models", root) == book
    assert find_book_dir("nothing", root) is None


def test_assemble_inputs_natural_order(project):
    book = str(project / "manuscript" / "2_linear_models")
    names = [os.path.basename(p) for p in assemble_inputs(book)]
    assert names == ["2_intro.md", "10_more.md"]


def test_resolve_artifact_falls_back_to_repo(project):
    book = str(project / "manuscript" / "2_linear_models")
    assert resolve_artifact(book, "epub.css") == str(project / "artifacts" / "epub.css")
    assert resolve_artifact(book, "nope.css") is None


def make_builder(fmt, project):
    book = str(project / "manuscript" / "2_linear_models")
    output_dir = str(project / "output")
    os.makedirs(output_dir, exist_ok=True)
    return BUILDERS[fmt](
        config=BookConfig.load(book),
        book_dir=book,
        input_files=assemble_inputs(book),
        output_dir=output_dir,
    )


def test_markdown_builder(monkeypatch, project):
    monkeypatch.setattr(base.BaseBuilder, "check_tool", lambda self, name: True)
    monkeypatch.setattr(pipeline, "pandoc_convert", html_pandoc)

    builder = make_builder("md", project)
    assert builder.run() is True

    text = (project / "output" / "linear.md").read_text(encoding="utf-8")
    assert "![Figure 1.1: A.](a.png)" in text
    assert "Back to 1." in text
    assert os.listdir(str(project / "output")) == ["linear.md"]


def test_epub_builder(monkeypatch, project):
    monkeypatch.setattr(base.BaseBuilder, "check_tool", lambda self, name: True)
    monkeypatch.setattr(pipeline, "pandoc_convert", html_pandoc)

    runs = []

    def epub_pandoc(input_file, to, from_format, output, citeproc=False, options=None, verbose=False):
        with open(input_file, encoding="utf-8") as f:
            runs.append({"to": to, "source": f.read(), "options": options})
        write(output, "epub")
        return output

    conversions = []

    def fake_calibre(input_file, output, options=""):
        conversions.append((input_file, output))
        return input_file.replace(".epub", ".mobi")

    monkeypatch.setattr(epub_builder, "pandoc_convert", epub_pandoc)
    monkeypatch.setattr(epub_builder, "calibre", fake_calibre)

    builder = make_builder("epub", project)
    assert builder.run() is True

    run = runs[0]
    assert run["to"] == "epub3"
    assert "![Figure 1.1: A.](a.png)" in run["source"]
    assert "--number-sections" in run["options"]
    css_path = run["options"][run["options"].index("--css") + 1]
    assert not os.path.exists(css_path)

    assert conversions == [(builder.output_file, "mobi")]
    assert os.listdir(str(project / "output")) == ["linear.epub"]


def test_epub_builder_reports_conversion_errors(monkeypatch, project, capsys):
    monkeypatch.setattr(base.BaseBuilder, "check_tool", lambda self, name: True)

    def broken(*args, **kwargs):
        raise ConversionError("pandoc (html) failed (exit 1)")

    monkeypatch.setattr(pipeline, "pandoc_convert", broken)

    builder = make_builder("epub", project)
    assert builder.run() is False
    assert "pandoc (html) failed" in capsys.readouterr().out
    assert os.listdir(str(project / "output")) == []
