from __future__ import annotations

import fitz

from dirigia.services.export_service import A4_LAYOUT, PageLayout, paginate, render_pdf, wrap_text


def test_wrap_is_greedy_and_keeps_blank_lines():
    lines = wrap_text("aaa bbb ccc\n\nddd", len, 7)
    assert lines == ["aaa bbb", "ccc", "", "ddd"]


def test_words_wider_than_a_line_are_split():
    assert wrap_text("abcdefghij xy", len, 4) == ["abcd", "efgh", "ij", "xy"]


def test_paginate_breaks_before_crossing_bottom_margin():
    # height 100, margin 10, line 7: baselines 10, 17, ... 80 fit (87 + 7 > 90 does not)
    layout = PageLayout(page_height_mm=100, margin_mm=10, line_height_mm=7)
    pages = paginate([f"l{i}" for i in range(25)], layout)
    assert [len(p) for p in pages] == [11, 11, 3]
    assert pages[1][0][1] == "l11"
    assert pages[1][0][0] == layout.margin


def test_a4_layout_geometry():
    assert round(A4_LAYOUT.page_width) == 595
    assert round(A4_LAYOUT.page_height) == 842
    assert round(A4_LAYOUT.margin, 1) == 56.7


def test_long_text_spans_multiple_pages():
    text = "\n".join(f"Parágrafo {i}: o condutor não foi notificado no prazo legal." for i in range(80))
    pdf = render_pdf(text)
    doc = fitz.open(stream=pdf, filetype="pdf")
    try:
        assert doc.page_count == 3
        assert round(doc.load_page(0).rect.width) == 595
        assert "Parágrafo 0:" in doc.load_page(0).get_text()
        assert "Parágrafo 79:" in doc.load_page(2).get_text()
    finally:
        doc.close()


def test_typographic_characters_survive():
    line = "Art. 218 – “velocidade” • ação ≤ 20% ‘art. 280’ …"
    doc = fitz.open(stream=render_pdf(line), filetype="pdf")
    try:
        assert line in doc.load_page(0).get_text()
    finally:
        doc.close()


def test_blank_document_still_has_a_page():
    doc = fitz.open(stream=render_pdf(""), filetype="pdf")
    try:
        assert doc.page_count == 1
    finally:
        doc.close()
