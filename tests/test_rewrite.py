from bookxref.rewrite import (
    BROKEN_REF,
    add_eq_numbers,
    map_prose,
    prose_index,
    resolve_ref_links_epub,
    restore_ref_links,
    resolve_refs_md,
    strip_block_markers,
)


TABLE = {
    "fig:plot": "2.1",
    "tab:t": "1.1",
    "eq:xy": "3",
    "thm:p": "1.1",
    "intro": "1",
}


def test_prose_index_skips_fenced_blocks():
    lines = ["a", "```r", "code", "```", "b", "~~~~", "~~~", "x", "~~~~", "c"]
    assert prose_index(lines) == [0, 4, 9]


def test_prose_index_unclosed_fence():
    assert prose_index(["a", "```", "b"]) == [0]


def test_inline_reference_example():
    lines = resolve_refs_md(["See Figure \\@ref(fig:plot) above."], TABLE)
    assert lines == ["See Figure 2.1 above."]


def test_section_reference():
    assert resolve_refs_md(["Chapter \\@ref(intro)."], TABLE) == ["Chapter 1."]


def test_image_caption_label():
    lines = resolve_refs_md(["![(\\#fig:plot) A plot.](plot.png)"], TABLE)
    assert lines == ["![Figure 2.1: A plot.](plot.png)"]


def test_table_caption_label():
    lines = resolve_refs_md(["Table: (\\#tab:t) Summary statistics."], TABLE)
    assert lines == ["Table: Table 1.1: Summary statistics."]


def test_caption_prefix_uses_label_names():
    lines = resolve_refs_md(
        ["![(\\#fig:plot) A plot.](plot.png)"], TABLE, label_names={"fig": "Abbildung "}
    )
    assert lines == ["![Abbildung 2.1: A plot.](plot.png)"]


def test_theorem_label_becomes_anchor():
    lines = resolve_refs_md(["\\BeginKnitrBlock{theorem}(\\#thm:p) Pythagoras"], TABLE)
    assert lines == ['\\BeginKnitrBlock{theorem}<span id="thm:p"></span> Pythagoras']


def test_label_outside_caption_line_is_untouched():
    lines = resolve_refs_md(["Some text (\\#fig:plot) here."], TABLE)
    assert lines == ["Some text (\\#fig:plot) here."]


def test_dangling_caption_label_is_left_silently(capsys):
    line = "![(\\#fig:missing) Lost.](lost.png)"
    assert resolve_refs_md([line], TABLE) == [line]
    assert capsys.readouterr().out == ""


def test_alt_text_label_is_stripped():
    lines = resolve_refs_md(['<img src="a.png" alt="(\\#fig:a) A" />'], {})
    assert lines == ['<img src="a.png" alt=" A" />']


def test_unresolved_reference_is_marked(capsys):
    lines = resolve_refs_md(["See \\@ref(fig:nope)."], TABLE)
    assert lines == [f"See {BROKEN_REF}."]
    assert "fig:nope" in capsys.readouterr().out


def test_reference_in_inline_code_is_untouched():
    line = "Write `\\@ref(fig:plot)` to refer to it."
    assert resolve_refs_md([line], TABLE) == [line]


def test_reference_resolution_is_idempotent():
    once = resolve_refs_md(["Figures \\@ref(fig:plot) and \\@ref(tab:t)."], TABLE)
    assert resolve_refs_md(once, TABLE) == once
    assert "\\@ref(" not in once[0]


def test_caption_and_reference_resolve_to_same_number():
    lines = resolve_refs_md(
        ["![(\\#fig:plot) A plot.](plot.png)", "", "As \\@ref(fig:plot) shows."], TABLE
    )
    assert lines[0] == "![Figure 2.1: A plot.](plot.png)"
    assert lines[2] == "As 2.1 shows."


def test_references_in_code_blocks_are_not_rewritten():
    lines = ["```", "\\@ref(fig:plot)", "```", "\\@ref(fig:plot)"]
    result = map_prose(lines, lambda prose: resolve_refs_md(prose, TABLE))
    assert result == ["```", "\\@ref(fig:plot)", "```", "2.1"]


EQUATION = ["\\begin{equation}", "x = y (\\#eq:xy)", "\\end{equation}"]


def test_equation_numbers_markdown():
    assert add_eq_numbers(EQUATION, TABLE, to_md=True)[1] == "x = y \\tag{3}"


def test_equation_numbers_epub():
    assert add_eq_numbers(EQUATION, TABLE, to_md=False)[1] == "x = y \\qquad(3)"


def test_equation_environment_needs_whole_line():
    lines = ["\\begin{equation} ", "x = y (\\#eq:xy)", "\\end{equation}"]
    assert add_eq_numbers(lines, TABLE) == lines


def test_equation_label_outside_environment_is_untouched():
    lines = ["x = y (\\#eq:xy)"] + EQUATION[:1] + ["z"] + EQUATION[2:]
    assert add_eq_numbers(lines, TABLE)[0] == "x = y (\\#eq:xy)"


def test_align_with_several_labels():
    table = {"eq:a": "1.1", "eq:b": "1.2"}
    lines = ["\\begin{align}", "a (\\#eq:a) \\\\", "b (\\#eq:b)", "\\end{align}"]
    assert add_eq_numbers(lines, table, to_md=True) == [
        "\\begin{align}", "a \\tag{1.1} \\\\", "b \\tag{1.2}", "\\end{align}",
    ]


REF_LINK_SOURCE = [
    "(ref:cap) Raw *text*.",
    "",
    "![(ref:cap)](a.png)",
    "Literal `(ref:cap)` stays.",
]


def test_ref_links_epub_uses_source_text():
    lines = resolve_ref_links_epub(REF_LINK_SOURCE, {"(ref:cap)": "Raw <em>text</em>."})
    assert lines == ["", "", "![Raw *text*.](a.png)", "Literal `(ref:cap)` stays."]


def test_ref_links_markdown_prefers_html_text():
    lines = resolve_ref_links_epub(
        REF_LINK_SOURCE, {"(ref:cap)": "Raw <em>text</em>."}, to_md=True
    )
    assert lines[2] == "![Raw <em>text</em>.](a.png)"


def test_ref_links_without_definitions():
    lines = ["No (ref:undefined) here."]
    assert resolve_ref_links_epub(lines, {"(ref:undefined)": "x"}) == lines


def test_strip_block_markers():
    lines = ["\\BeginKnitrBlock{theorem}Statement", "end\\EndKnitrBlock{theorem}"]
    assert strip_block_markers(lines) == ["Statement", "end"]


def test_ref_link_text_is_not_expanded_again():
    links = {"(ref:a)": "see (ref:b)", "(ref:b)": "B text"}
    lines = ["(ref:a) and (ref:b).", "`(ref:b)` in code."]
    assert restore_ref_links(lines, links) == [
        "see (ref:b) and B text.",
        "`(ref:b)` in code.",
    ]
