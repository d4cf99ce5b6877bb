"""Tests for chapter checksums and word counts."""

import httpx
import pytest

from pipeline.ecfr.checksum import (
    checksum_text,
    count_words,
    extract_chapter_checksum,
    get_title_stats,
)
from pipeline.ecfr.client import EcfrClient
from pipeline.ecfr.counts import ChapterCountsResult
from pipeline.ecfr.hierarchy import LeafRecord, LevelMetadata
from pipeline.ecfr.titles import TitleRecord

SHA256_ABC = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
SHA256_EMPTY = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def _title_with_parts(parts: list[str], up_to_date_as_of: str | None = "2024-05-01") -> TitleRecord:
    leaves = [
        LeafRecord(
            path=f"Title 36 > Chapter VIII > Part {part}",
            type="subpart",
            metadata={
                "title": LevelMetadata("title", "", "Title 36", 36),
                "chapter": LevelMetadata("chapter", "", "Chapter VIII", "VIII"),
                "part": LevelMetadata("part", "", f"Part {part}", part),
            },
        )
        for part in parts
    ]
    return TitleRecord(
        number=36,
        name="Parks, Forests, and Public Property",
        up_to_date_as_of=up_to_date_as_of,
        latest_issue_date="2024-04-26",
        title_chapter_counts=ChapterCountsResult(
            title="36", chapter="VIII", raw_leaves=leaves
        ),
    )


class TestChecksumText:
    """Tests for checksum_text."""

    def test_known_digest(self) -> None:
        assert checksum_text("abc") == SHA256_ABC

    def test_empty_string(self) -> None:
        assert checksum_text("") == SHA256_EMPTY


class TestCountWords:
    """Tests for count_words."""

    def test_strips_tags_and_entities(self) -> None:
        assert count_words("<doc>Hello <b>World</b>&amp; &nbsp; 123</doc>") == 3

    def test_adjacent_tags_separate_words(self) -> None:
        assert count_words("<P>one</P><P>two</P>") == 2

    def test_entities_case_insensitive(self) -> None:
        assert count_words("a &AMP; b") == 2

    def test_empty(self) -> None:
        assert count_words("") == 0
        assert count_words("<doc/>") == 0


class TestExtractChapterChecksum:
    """Tests for extract_chapter_checksum."""

    @pytest.mark.asyncio
    async def test_concatenates_part_texts_in_order(self) -> None:
        texts = {"800": "<P>a</P>", "810": "<P>b c</P>"}
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text=texts[request.url.params["part"]])

        client = EcfrClient(transport=httpx.MockTransport(handler))
        title = _title_with_parts(["800", "810"])

        result = await extract_chapter_checksum(client, title, "VIII", "achp")

        assert result.checksum == checksum_text("<P>a</P><P>b c</P>")
        assert result.word_count == 3
        assert [r.url.params["part"] for r in requests] == ["800", "810"]
        assert requests[0].url.path == "/api/versioner/v1/full/2024-05-01/title-36.xml"
        assert requests[0].url.params["chapter"] == "VIII"

    @pytest.mark.asyncio
    async def test_same_snapshot_same_checksum(self) -> None:
        client = EcfrClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<P>x</P>"))
        )
        title = _title_with_parts(["800", "810"])

        first = await extract_chapter_checksum(client, title, "VIII", "achp")
        second = await extract_chapter_checksum(client, title, "VIII", "achp", concurrency=4)

        assert first.checksum == second.checksum

    @pytest.mark.asyncio
    async def test_defaults_to_latest_date(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, text="")

        client = EcfrClient(transport=httpx.MockTransport(handler))
        title = _title_with_parts(["800"], up_to_date_as_of=None)

        await extract_chapter_checksum(client, title, "VIII", "achp")

        assert paths == ["/api/versioner/v1/full/latest/title-36.xml"]

    @pytest.mark.asyncio
    async def test_no_parts_checksums_empty_text(self) -> None:
        client = EcfrClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(500))
        )
        title = _title_with_parts([])

        result = await extract_chapter_checksum(client, title, "VIII", "achp")

        assert result.checksum == SHA256_EMPTY
        assert result.word_count == 0

    @pytest.mark.asyncio
    async def test_failed_part_aborts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["part"] == "810":
                return httpx.Response(404, text="not found")
            return httpx.Response(200, text="<P>a</P>")

        client = EcfrClient(transport=httpx.MockTransport(handler))
        title = _title_with_parts(["800", "810"])

        with pytest.raises(httpx.HTTPStatusError):
            await extract_chapter_checksum(client, title, "VIII", "achp")

    @pytest.mark.asyncio
    async def test_input_record_not_mutated(self) -> None:
        client = EcfrClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="abc"))
        )
        title = _title_with_parts(["800"])

        result = await extract_chapter_checksum(client, title, "VIII", "achp")

        assert result is not title
        assert title.checksum is None
        assert title.word_count is None
        assert result.checksum == SHA256_ABC


class TestGetTitleStats:
    """Tests for get_title_stats."""

    @pytest.mark.asyncio
    async def test_uses_latest_issue_date(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, text="<TITLE>one two</TITLE>")

        client = EcfrClient(transport=httpx.MockTransport(handler))
        title = _title_with_parts([])

        result = await get_title_stats(client, title, agency_slug="achp")

        assert paths == ["/api/versioner/v1/full/2024-04-26/title-36.xml"]
        assert result.word_count == 2
        assert result.checksum == checksum_text("<TITLE>one two</TITLE>")
        assert result.agency_slug == "achp"
