"""End-to-end runs of the coordinator against the mock directory server."""

import csv
import io
import json

import pytest

from dirscrape.config import ScrapeRequest
from dirscrape.data_types import RunState
from dirscrape.driver.callbacks import save_records_to_jsonl_file
from dirscrape.driver.coordinator import RunCoordinator
from dirscrape.driver.http_source import HttpPageSource
from dirscrape.driver.links import YellowPagesLinks
from dirscrape.output.run_output import RunOutput
from tests.utils import collect_results_async


def read_table(path) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(path.read_text(encoding="utf-8"))))


class TestHttpRun:
    @pytest.mark.asyncio
    async def test_full_run(self, server_url, fast_settings, tmp_path):
        request = ScrapeRequest(
            search_term="plumbers", location="Austin, TX", parallelism=1
        )
        output = RunOutput(tmp_path, request.search_term, request.location).prepare()
        jsonl_path = tmp_path / "records.jsonl"
        on_complete, summaries = collect_results_async()

        with jsonl_path.open("w", encoding="utf-8") as jsonl:
            async with HttpPageSource.open(fast_settings) as source:
                coordinator = RunCoordinator(
                    request,
                    source,
                    YellowPagesLinks(base_url=server_url),
                    settings=fast_settings,
                    output=output,
                    on_record=save_records_to_jsonl_file(jsonl),
                    on_run_complete=on_complete,
                )
                summary = await coordinator.run()

        assert summary.state == RunState.DONE
        assert summary.total_pages_estimate == 3
        assert summary.counters.listing_pages_ok == 3
        assert summary.counters.detail_pages_ok == 5
        assert summary.counters.detail_pages_failed == 1
        assert summary.counters.detail_pages_empty == 1
        assert summary.counters.checkpoints_written == 3

        rows = read_table(output.table_path)
        names = [row["businessName"] for row in rows]
        assert names == [
            "Beetle Plumbing",
            "Ant Hill Drains",
            "Cricket Pipes",
            "Mantis Sewer",
            "Ladybug Leaks",
        ]
        by_name = {row["businessName"]: row for row in rows}

        # Sidebar content outside the container never leaks in
        assert "Someone Else" not in names

        beetle = by_name["Beetle Plumbing"]
        assert beetle["phone"] == "(512) 555-0101"
        assert beetle["website"] == "https://beetle-plumbing.example/"
        assert beetle["categories"] == "Plumbers; Water Heaters"
        assert beetle["verified"] == "true"
        assert beetle["review1_text"] == 'He said "great service," loved it.'
        assert beetle["totalReviews"] == "2"
        assert beetle["email"] == ""

        ant = by_name["Ant Hill Drains"]
        assert ant["email"] == "dig@anthill.example"
        assert ant["phone"] == ""

        cricket = by_name["Cricket Pipes"]
        assert cricket["photo1"] == "https://img.example/cricket/front_full.jpg"
        assert cricket["totalPhotos"] == "2"

        mantis = by_name["Mantis Sewer"]
        assert mantis["totalReviews"] == "15"
        assert mantis["review10_author"] == "Bug 10"
        assert "review11_author" not in rows[0]

        assert by_name["Ladybug Leaks"]["phone"] == "(512) 555-0107"
        assert beetle["sourceUrl"] == f"{server_url}/mip/beetle-plumbing"

        # Schema order follows discovery: Beetle's fields, then Ant's email
        header = list(rows[0])
        assert header[0] == "businessName"
        assert header.index("email") > header.index("totalReviews")
        assert header[-1] == "sourceUrl"

        summary_data = json.loads(output.summary_path.read_text())
        assert summary_data["records"] == 5
        assert summary_data["fields"] == header[:-1]

        jsonl_records = [json.loads(line) for line in jsonl_path.read_text().splitlines()]
        assert [r["businessName"] for r in jsonl_records] == names
        assert "email" not in jsonl_records[0]
        assert jsonl_records[0]["pageIndex"] == 1
        assert summaries == [summary]

    @pytest.mark.asyncio
    async def test_parallel_run_collects_same_records(self, server_url, fast_settings):
        request = ScrapeRequest(
            search_term="plumbers", location="Austin, TX", parallelism=3
        )
        async with HttpPageSource.open(fast_settings) as source:
            coordinator = RunCoordinator(
                request,
                source,
                YellowPagesLinks(base_url=server_url),
                settings=fast_settings,
            )
            summary = await coordinator.run()

        assert summary.record_count == 5
        assert {r["businessName"] for r in coordinator.records} == {
            "Beetle Plumbing",
            "Ant Hill Drains",
            "Cricket Pipes",
            "Mantis Sewer",
            "Ladybug Leaks",
        }
        # Every record only holds fields the final schema knows about
        for record in coordinator.records:
            assert set(record) <= set(coordinator.schema)

    @pytest.mark.asyncio
    async def test_unreachable_first_page_aborts(self, fast_settings, tmp_path):
        from dirscrape.common.exceptions import BootstrapFailure
        from tests.conftest import find_free_port

        request = ScrapeRequest(search_term="plumbers", location="Austin, TX")
        output = RunOutput(tmp_path, request.search_term, request.location).prepare()
        async with HttpPageSource.open(fast_settings) as source:
            coordinator = RunCoordinator(
                request,
                source,
                YellowPagesLinks(base_url=f"http://127.0.0.1:{find_free_port()}"),
                settings=fast_settings,
                output=output,
            )
            with pytest.raises(BootstrapFailure):
                await coordinator.run()
        assert json.loads(output.summary_path.read_text())["state"] == "aborted"
