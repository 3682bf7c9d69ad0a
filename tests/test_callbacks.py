"""Tests for the coordinator callback factories."""

import io
import json
from datetime import datetime, timezone

import pytest

from dirscrape.data_types import Record
from dirscrape.driver.callbacks import (
    echo_checkpoint,
    echo_new_fields,
    record_to_dict,
    save_records_to_jsonl_file,
)

EXTRACTED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_record(**values) -> Record:
    return Record(
        values,
        "https://example.com/mip/beetle-plumbing",
        page_index=2,
        extracted_at=EXTRACTED,
    )


class TestRecordToDict:
    def test_includes_metadata(self):
        data = record_to_dict(make_record(businessName="Beetle Plumbing"))
        assert data == {
            "businessName": "Beetle Plumbing",
            "sourceUrl": "https://example.com/mip/beetle-plumbing",
            "pageIndex": 2,
            "extractedAt": "2026-03-01T12:00:00+00:00",
        }

    def test_without_metadata(self):
        data = record_to_dict(make_record(verified=True), with_metadata=False)
        assert data == {"verified": True}


class TestSaveRecordsToJsonl:
    @pytest.mark.asyncio
    async def test_one_line_per_record(self):
        buffer = io.StringIO()
        callback = save_records_to_jsonl_file(buffer)

        await callback(make_record(businessName="Beetle Plumbing"))
        await callback(make_record(businessName="Café Cricket", totalReviews=3))

        lines = buffer.getvalue().splitlines()
        assert len(lines) == 2
        second = json.loads(lines[1])
        assert second["businessName"] == "Café Cricket"
        assert second["totalReviews"] == 3
        assert "Café" in lines[1]

    @pytest.mark.asyncio
    async def test_absent_fields_not_padded(self):
        buffer = io.StringIO()
        await save_records_to_jsonl_file(buffer, with_metadata=False)(
            make_record(phone="(512) 555-0101")
        )
        assert json.loads(buffer.getvalue()) == {"phone": "(512) 555-0101"}


class TestEchoCallbacks:
    @pytest.mark.asyncio
    async def test_new_fields(self, capsys):
        await echo_new_fields()(("businessName", "phone"))
        assert capsys.readouterr().out == "New fields: businessName, phone\n"

    @pytest.mark.asyncio
    async def test_checkpoint_counts_data_rows(self, capsys):
        table = "businessName,phone\nBeetle,1\nAnt,2\n"
        await echo_checkpoint()(table, 3)
        assert capsys.readouterr().out == "Checkpoint after batch 3: 2 rows\n"

    @pytest.mark.asyncio
    async def test_checkpoint_rows_with_multiline_cells(self, capsys):
        table = '"review1_text"\n"line one\nline two"\n"ok"\n'
        await echo_checkpoint()(table, 1)
        assert capsys.readouterr().out == "Checkpoint after batch 1: 2 rows\n"

