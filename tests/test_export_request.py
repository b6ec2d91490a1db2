from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlsplit

import pytest

from zona9.export_request import (
    ExportRequest,
    client_capture_filename,
    is_export_requested,
    parse_output_format,
)
from zona9.models import Period, ViewMode


def test_day_request_from_query_params():
    req = ExportRequest.from_query_params({"export": "true", "view": "day", "date": "2026-03-10", "host": "https://zona9.example.com/"})
    assert req.period == Period.single(date(2026, 3, 10))
    assert req.view == ViewMode.DAY
    assert req.host == "https://zona9.example.com"
    assert req.filename("png") == "Zona9_Report_2026-03-10.png"


def test_week_request_uses_interval_or_week_ending():
    explicit = ExportRequest.from_query_params(
        {"view": "week", "startDate": "2026-03-01", "endDate": "2026-03-10"}, require_host=False
    )
    assert explicit.period == Period(date(2026, 3, 1), date(2026, 3, 10))
    assert explicit.filename("pdf") == "Zona9_Report_2026-03-01_to_2026-03-10.pdf"

    implied = ExportRequest.from_query_params({"view": "week", "date": "2026-03-10", "startDate": "undefined"}, require_host=False)
    assert implied.period == Period(date(2026, 3, 4), date(2026, 3, 10))


def test_invalid_requests_raise_value_error():
    with pytest.raises(ValueError):
        ExportRequest.from_query_params({"view": "day", "date": "2026-03-10"})
    with pytest.raises(ValueError):
        ExportRequest.from_query_params({"view": "day", "date": "10/03/2026", "host": "http://x"})
    with pytest.raises(ValueError):
        ExportRequest.from_query_params({"view": "day", "date": "2026-03-10", "host": "ftp://x"})
    with pytest.raises(ValueError):
        ExportRequest(period=Period(date(2026, 3, 1), date(2026, 3, 2)), view=ViewMode.DAY)
    with pytest.raises(ValueError):
        parse_output_format("gif")


def test_target_url_drops_host_and_round_trips():
    req = ExportRequest(Period.week_ending(date(2026, 3, 10)), ViewMode.WEEK, "http://dash:8501")
    url = req.target_url()
    assert url.startswith("http://dash:8501/?")
    query = {k: v[-1] for k, v in parse_qs(urlsplit(url).query).items()}
    assert "host" not in query
    assert is_export_requested(query)
    assert ExportRequest.from_query_params(query, require_host=False).period == req.period


def test_endpoint_url_carries_format_and_host():
    req = ExportRequest(Period.single(date(2026, 3, 10)), ViewMode.DAY, "http://dash:8501")
    url = req.endpoint_url("http://capture:8502/api/screenshot", "pdf")
    query = parse_qs(urlsplit(url).query)
    assert query["format"] == ["pdf"]
    assert query["host"] == ["http://dash:8501"]
    assert query["date"] == ["2026-03-10"]


def test_list_valued_params_use_last_value():
    assert is_export_requested({"export": ["false", "true"]})
    assert not is_export_requested({"export": "0"})


def test_client_capture_filename():
    assert client_capture_filename(Period.single(date(2026, 3, 10))) == "Zona9_Dashboard_Report_2026-03-10.png"
