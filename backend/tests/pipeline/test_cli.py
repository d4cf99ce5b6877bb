"""Tests for the pipeline CLI commands."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pipeline.cli import main
from pipeline.ecfr.client import EcfrClient
from pipeline.ecfr.ingestion import AgencyNotFoundError, AgencyProcessingResult
from pipeline.ecfr.titles import TitleRecord


def _title() -> TitleRecord:
    return TitleRecord(
        number=36,
        name="Parks, Forests, and Public Property",
        latest_issue_date="2024-04-26",
    )


def _run(argv: list[str]) -> int:
    with patch("sys.argv", ["ecfr-pipeline", *argv]):
        return main()


@pytest.fixture
def session_maker():
    """Stub out table creation and the session factory used by commands."""
    with (
        patch("app.models.base.init_models", new_callable=AsyncMock),
        patch("app.models.base.async_session_maker", MagicMock()) as maker,
    ):
        yield maker


class TestTitleStatsCommand:
    """Tests for the title-stats command."""

    def test_prints_checksum_of_whole_title(self, capsys) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="<ECFR>Parks and forests</ECFR>")

        client = EcfrClient(transport=httpx.MockTransport(handler))

        with (
            patch("pipeline.cli._load_title", new_callable=AsyncMock, return_value=_title()),
            patch("pipeline.cli.EcfrClient.from_settings", return_value=client),
        ):
            exit_code = _run(["title-stats", "36", "--agency", "achp"])

        assert exit_code == 0
        assert requests[0].url.path.endswith("/2024-04-26/title-36.xml")
        data = json.loads(capsys.readouterr().out)
        assert data["title"] == 36
        assert data["wordCount"] == 3
        assert len(data["checksum"]) == 64

    def test_unknown_title(self) -> None:
        with patch("pipeline.cli._load_title", new_callable=AsyncMock, return_value=None):
            assert _run(["title-stats", "99"]) == 1

    def test_upstream_error_exits_nonzero(self) -> None:
        client = EcfrClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(503, text="down"))
        )

        with (
            patch("pipeline.cli._load_title", new_callable=AsyncMock, return_value=_title()),
            patch("pipeline.cli.EcfrClient.from_settings", return_value=client),
        ):
            assert _run(["title-stats", "36"]) == 1


class TestAgencyCommands:
    """Tests for the load-agencies and process-agency commands."""

    def test_load_agencies_passes_limit(self, session_maker: MagicMock) -> None:
        with patch("pipeline.ecfr.ingestion.AgencyIngestionService") as mock_cls:
            mock_cls.return_value.load_agencies = AsyncMock(
                return_value=MagicMock(status="completed", details="5 agencies stored")
            )
            exit_code = _run(["load-agencies", "--limit", "3"])

        assert exit_code == 0
        mock_cls.return_value.load_agencies.assert_awaited_once_with(limit=3)

    def test_load_agencies_failure(self, session_maker: MagicMock) -> None:
        with patch("pipeline.ecfr.ingestion.AgencyIngestionService") as mock_cls:
            mock_cls.return_value.load_agencies = AsyncMock(
                return_value=MagicMock(status="failed", error_message="unreachable")
            )
            assert _run(["load-agencies"]) == 1

        mock_cls.return_value.load_agencies.assert_awaited_once_with(limit=None)

    def test_process_agency_reports_failures(
        self, session_maker: MagicMock, capsys
    ) -> None:
        result = AgencyProcessingResult(
            short_name="USDA",
            processed=["Title 7 Chapter I"],
            failed=["Title 7 Chapter XXX"],
        )
        with patch("pipeline.ecfr.ingestion.AgencyIngestionService") as mock_cls:
            mock_cls.return_value.process_agency = AsyncMock(return_value=result)
            exit_code = _run(["process-agency", "USDA", "--concurrency", "4"])

        assert exit_code == 1
        assert mock_cls.call_args.kwargs == {"concurrency": 4}
        data = json.loads(capsys.readouterr().out)
        assert data["processed"] == ["Title 7 Chapter I"]
        assert data["failed"] == ["Title 7 Chapter XXX"]

    def test_process_agency_success(self, session_maker: MagicMock) -> None:
        result = AgencyProcessingResult(short_name="ACHP", processed=["Title 36 Chapter VIII"])
        with patch("pipeline.ecfr.ingestion.AgencyIngestionService") as mock_cls:
            mock_cls.return_value.process_agency = AsyncMock(return_value=result)
            assert _run(["process-agency", "ACHP"]) == 0

    def test_process_unknown_agency(self, session_maker: MagicMock) -> None:
        with patch("pipeline.ecfr.ingestion.AgencyIngestionService") as mock_cls:
            mock_cls.return_value.process_agency = AsyncMock(
                side_effect=AgencyNotFoundError("Agency NOPE not found")
            )
            assert _run(["process-agency", "NOPE"]) == 1
