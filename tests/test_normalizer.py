"""
Tests for execution/docket_rag/normalizer.py

Covers: boilerplate removal, line-break canonicalization, trimming,
        per-page normalization with page offsets.
"""

import pytest


class TestNormalize:
    """Tests for TextNormalizer.normalize()."""

    def test_empty_input(self):
        from execution.docket_rag.normalizer import normalize
        assert normalize("") == ""

    def test_plain_text_untouched(self):
        from execution.docket_rag.normalizer import normalize
        text = "The Court grants the motion.\n\nDistributions shall follow."
        assert normalize(text) == text

    def test_trims_outer_whitespace(self):
        from execution.docket_rag.normalizer import normalize
        assert normalize("  \n\nThe motion is granted.\n\n  ") == "The motion is granted."

    def test_collapses_excess_line_breaks(self):
        from execution.docket_rag.normalizer import normalize
        assert normalize("First paragraph.\n\n\n\n\nSecond paragraph.") == (
            "First paragraph.\n\nSecond paragraph."
        )

    def test_two_line_breaks_preserved(self):
        from execution.docket_rag.normalizer import normalize
        assert normalize("A.\n\nB.") == "A.\n\nB."

    def test_removes_doj_letterhead(self):
        from execution.docket_rag.normalizer import normalize
        text = (
            "UNITED STATES DEPARTMENT OF JUSTICE Office of the Trustee "
            "844 King Street WILMINGTON, DE 19801 The Trustee objects."
        )
        assert normalize(text) == "The Trustee objects."

    def test_removes_attention_line(self):
        from execution.docket_rag.normalizer import normalize
        text = "ATTN: Claims Agent 1 Liberty Plaza NEW YORK, NY 10006\nBody text."
        assert normalize(text) == "Body text."

    def test_removes_po_box_address(self):
        from execution.docket_rag.normalizer import normalize
        text = "P.O. BOX 875 Ben Franklin Station WASHINGTON, DC 20044\nBody text."
        assert normalize(text) == "Body text."

    def test_removes_case_number_and_filed_lines(self):
        from execution.docket_rag.normalizer import normalize
        text = "CASE NO.: 22-11068 (JTD)\nFILED: 01/15/2024\nThe Debtors move."
        assert normalize(text) == "The Debtors move."

    def test_removes_page_footer(self):
        from execution.docket_rag.normalizer import normalize
        assert normalize("End of argument. Page 3 of 12") == "End of argument."

    def test_unterminated_letterhead_left_in_place(self):
        """A letterhead without its closing ZIP line is not removed."""
        from execution.docket_rag.normalizer import normalize
        text = "UNITED STATES DEPARTMENT OF JUSTICE Office of the Trustee"
        assert normalize(text) == text

    def test_patterns_are_case_sensitive(self):
        from execution.docket_rag.normalizer import normalize
        text = "case no.: lower case caption stays\nBody."
        assert normalize(text) == text

    def test_sample_filing(self, sample_filing_text):
        from execution.docket_rag.normalizer import normalize
        result = normalize(sample_filing_text)

        assert result.startswith("IN THE UNITED STATES BANKRUPTCY COURT")
        assert "CASE NO.:" not in result
        assert "FILED:" not in result
        assert "Page 1 of 2" not in result
        assert "ATTN:" not in result
        assert "\n\n\n" not in result

    def test_custom_rules(self):
        import re
        from execution.docket_rag.normalizer import TextNormalizer
        from execution.docket_rag.patterns import BoilerplateRule

        normalizer = TextNormalizer(rules=[BoilerplateRule("draft", re.compile(r"DRAFT"))])
        assert normalizer.normalize("DRAFT Order") == "Order"


class TestNormalizePages:
    """Tests for TextNormalizer.normalize_pages()."""

    def test_offsets_point_at_page_starts(self):
        from execution.docket_rag.normalizer import TextNormalizer

        text, offsets = TextNormalizer().normalize_pages(["First page.", "Second page.", "Third."])

        assert text == "First page.\n\nSecond page.\n\nThird."
        assert offsets == [0, 13, 27]
        assert text[offsets[1]:].startswith("Second page.")
        assert text[offsets[2]:].startswith("Third.")

    def test_empty_page_keeps_numbering(self):
        from execution.docket_rag.normalizer import TextNormalizer

        text, offsets = TextNormalizer().normalize_pages(["Alpha.", "Page 2 of 3", "Gamma."])

        assert text == "Alpha.\n\nGamma."
        assert len(offsets) == 3
        assert text[offsets[2]:].startswith("Gamma.")

    def test_no_pages(self):
        from execution.docket_rag.normalizer import TextNormalizer
        assert TextNormalizer().normalize_pages([]) == ("", [])
