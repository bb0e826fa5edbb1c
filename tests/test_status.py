"""Tests for the status calculator."""

from cascade_rules.ast_nodes import Document
from cascade_rules.status import DEFAULT_STATUS, calculate_status


class TestCalculateStatus:

    def test_files_means_completed(self):
        assert calculate_status({"files": "x.pdf"}) == "completed"

    def test_empty_is_queued(self):
        assert calculate_status({}) == "queued"
        assert calculate_status(None) == DEFAULT_STATUS

    def test_confirmed(self):
        assert calculate_status({"confirmed": True}) == "confirmed"

    def test_notrequired(self):
        assert calculate_status({"notrequired": True}) == "notrequired"

    def test_confirmed_must_be_true(self):
        assert calculate_status({"confirmed": "yes"}) == "queued"

    def test_other_form_data_is_queued(self):
        assert calculate_status({"notes": "hello"}) == "queued"
        assert calculate_status({"files": []}) == "queued"

    def test_status_field_priority(self):
        form = {"reviewStatus": "in-review", "documentStatus": "approved", "confirmed": True}
        assert calculate_status(form) == "approved"

    def test_explicit_status_wins(self):
        assert calculate_status({"status": "waiting", "files": "x.pdf"}) == "waiting"

    def test_blank_status_falls_through(self):
        assert calculate_status({"status": "", "files": "x.pdf"}) == "completed"

    def test_non_string_status(self):
        assert calculate_status({"permitStatus": 3}) == "3"


class TestDocumentRecords:

    def test_status_from_record(self):
        doc = Document.from_record({"id": "d1", "status": "waiting", "formData": "{}"})
        assert doc.status == "waiting"

    def test_status_from_form_data(self):
        doc = Document.from_record({"id": "d1", "formData": '{"files": "x.pdf"}'})
        assert doc.status == "completed"
        assert doc.form_data == {"files": "x.pdf"}

    def test_bad_form_data_json(self):
        doc = Document.from_record({"id": "d1", "formData": "{oops"})
        assert doc.form_data == {}
        assert doc.status == "queued"

    def test_document_type_key_variants(self):
        assert Document.from_record({"id": "d1", "documentTypeId": "dt-1"}).document_type_id == "dt-1"
        assert Document.from_record({"id": "d1", "documentType": "dt-2"}).document_type_id == "dt-2"
