import pytest

import build
from bookxref import pipeline


HTML = """\
<section id="intro" class="level1" data-number="1">
<h1 data-number="1"><span class="header-section-number">1</span> Intro</h1>
<p class="caption">(#fig:a) A.</p>
</section>
"""


@pytest.fixture(autouse=True)
def fake_pandoc(monkeypatch):
    def convert(input_file, to, from_format, output, citeproc=False, options=None, verbose=False):
        with open(output, "w", encoding="utf-8") as f:
            f.write(HTML)
        return output

    monkeypatch.setattr(pipeline, "pandoc_convert", convert)


def test_process_to_file(tmp_path, capsys):
    source = tmp_path / "ch1.md"
    source.write_text("# Intro {#intro}\n\nSee \\@ref(fig:a).\n", encoding="utf-8")
    out = tmp_path / "ch1.out.md"

    build.main(["process", str(source), "-o", str(out)])

    assert out.read_text(encoding="utf-8") == "# Intro {#intro}\n\nSee 1.1.\n"
    assert "✓" in capsys.readouterr().out


def test_process_to_stdout_global(tmp_path, capsys):
    source = tmp_path / "ch1.md"
    source.write_text("See \\@ref(fig:a) in \\@ref(intro).\n", encoding="utf-8")

    build.main(["process", str(source), "--global-numbering", "--to-md"])

    assert capsys.readouterr().out == "See 1 in 1.\n"


def test_process_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        build.main(["process", str(tmp_path / "missing.md")])


def test_calibre_same_filename(tmp_path, capsys):
    epub = str(tmp_path / "book.epub")
    with pytest.raises(SystemExit):
        build.main(["calibre", epub, epub])
    assert "same" in capsys.readouterr().out


def test_unknown_book(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit):
        build.main(["nonexistent", "--epub"])
    assert "Could not find book" in capsys.readouterr().out
