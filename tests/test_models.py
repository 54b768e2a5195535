"""Tests for the structural model, its validation and wire format."""
import pytest

from models import (
    GlossaryTerm,
    Heading,
    HistoryRecord,
    Page,
    PageFailure,
    PageSuccess,
    Paragraph,
    Stage,
    Table,
    TableCell,
    format_glossary,
    low_confidence_ids,
    outcome_to_dict,
    page_from_dict,
    page_to_dict,
    validate_document,
)


class TestPageValidation:

    def test_duplicate_block_ids_rejected(self):
        page = Page(1, [Paragraph("x", "a"), Paragraph("x", "b")])
        with pytest.raises(ValueError, match="Duplicate block id"):
            page.validate()

    @pytest.mark.parametrize("level", [0, 7])
    def test_heading_level_out_of_range(self, level):
        with pytest.raises(ValueError, match="level"):
            Page(1, [Heading("h", "Title", level=level)]).validate()

    def test_confidence_out_of_range(self):
        with pytest.raises(ValueError, match="Confidence"):
            Page(1, [Paragraph("p", "text", confidence=1.5)]).validate()

    def test_ragged_table_rejected(self):
        table = Table("t", rows=[[TableCell("a", "", 0, 0), TableCell("b", "", 0, 1)], [TableCell("c", "", 1, 0)]])
        with pytest.raises(ValueError, match="not rectangular"):
            Page(1, [table]).validate()

    def test_cell_position_must_match_grid(self):
        table = Table("t", rows=[[TableCell("a", "", 0, 1)]])
        with pytest.raises(ValueError, match="claims"):
            Page(1, [table]).validate()

    def test_lease_page_is_valid(self, lease_page):
        lease_page.validate()

    def test_document_page_numbers_must_be_dense(self):
        with pytest.raises(ValueError, match="dense"):
            validate_document([Page(1), Page(3)])
        validate_document([Page(1), Page(2)])


class TestEdits:

    def test_set_text_on_block_and_cell(self, lease_page):
        lease_page.set_text("h1", "Rental agreement")
        lease_page.set_text("c11", "Z")
        assert lease_page.blocks[0].text == "Rental agreement"
        assert lease_page.blocks[1].rows[1][1].text == "Z"

    def test_set_text_unknown_id(self, lease_page):
        with pytest.raises(KeyError):
            lease_page.set_text("missing", "x")

    def test_low_confidence_ids(self, lease_page):
        assert low_confidence_ids(lease_page, 0.9) == ["c01", "c10"]


class TestWireFormat:

    def test_decode_source_page(self):
        page = page_from_dict({
            "pageNumber": 1,
            "blocks": [
                {"id": "h", "type": "heading", "level": 2, "text": "Title", "confidence": 0.9,
                 "bbox": {"x1": 0, "y1": 0, "x2": 10, "y2": 5}},
                {"id": "t", "type": "table", "rows": [[{"id": "c", "text": "x", "confidence": 1}]]},
            ],
        })
        assert page.stage is Stage.SOURCE
        heading, table = page.blocks
        assert heading.level == 2 and heading.bbox.x2 == 10.0
        assert table.rows[0][0].row == 0 and table.rows[0][0].col == 0

    def test_translated_stage_drops_metadata(self):
        page = page_from_dict(
            {"pageNumber": 1, "blocks": [{"id": "p", "type": "paragraph", "text": "Bonjour", "confidence": 0.4}]},
            stage=Stage.TRANSLATED,
        )
        assert page.blocks[0].confidence is None
        assert page.stage is Stage.TRANSLATED

    @pytest.mark.parametrize("payload", [
        [],
        {"blocks": []},
        {"pageNumber": 1, "blocks": [{"id": "x", "type": "figure", "text": "?"}]},
        {"pageNumber": 1, "blocks": [{"id": "x", "type": "paragraph"}]},
        {"pageNumber": 1, "blocks": [{"type": "paragraph", "text": "no id"}]},
    ])
    def test_malformed_pages_rejected(self, payload):
        with pytest.raises(ValueError):
            page_from_dict(payload)

    def test_encode_without_metadata(self, lease_page):
        data = page_to_dict(lease_page, include_metadata=False)
        assert "bbox" not in data["blocks"][0]
        assert "confidence" not in data["blocks"][1]["rows"][0][0]
        assert data["blocks"][0] == {"id": "h1", "type": "heading", "text": "Lease", "level": 1}

    def test_encode_decode_keeps_page(self, lease_page):
        assert page_from_dict(page_to_dict(lease_page)) == lease_page


class TestOutcomesAndRecords:

    def test_outcome_dicts(self, lease_page):
        assert outcome_to_dict(PageFailure(3, "boom")) == {"status": "failure", "pageNumber": 3, "error": "boom"}
        success = outcome_to_dict(PageSuccess(lease_page))
        assert success["status"] == "success" and success["pageNumber"] == 1

    def test_format_glossary(self):
        terms = [GlossaryTerm("lease", "bail"), GlossaryTerm("tenant", "locataire")]
        assert format_glossary(terms) == "lease: bail\ntenant: locataire"

    def test_history_record_dict(self):
        record = HistoryRecord(id="1", file_name="a.pdf", source_language="en", target_language="fr",
                               page_count=2, failed_pages=[2], formats=["pdf"])
        assert HistoryRecord.from_dict(record.to_dict()) == record
