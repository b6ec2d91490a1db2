"""Export request value object: the flat query-parameter contract between page and renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlencode, urlsplit

from zona9.models import Period, ViewMode, format_date, parse_date


EXPORT_FLAG = "export"
PARAM_VIEW = "view"
PARAM_DATE = "date"
PARAM_START = "startDate"
PARAM_END = "endDate"
PARAM_HOST = "host"
PARAM_FORMAT = "format"

OUTPUT_FORMATS = {
    "png": "image/png",
    "pdf": "application/pdf",
}

_TRUTHY = {"1", "true", "yes", "on"}


def _param(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[-1] if value else None
    if value is None:
        return ""
    text = str(value).strip()
    return "" if text.lower() in {"undefined", "null", "none"} else text


def normalize_host(host: str) -> str:
    text = str(host or "").strip().rstrip("/")
    parts = urlsplit(text)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValueError(f"Host must be an absolute http(s) URL: {host!r}")
    return text


def is_export_requested(params: Mapping[str, Any]) -> bool:
    return _param(params, EXPORT_FLAG).lower() in _TRUTHY


def parse_output_format(value: Any) -> str:
    fmt = str(value or "png").strip().lower()
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported export format: {value!r}")
    return fmt


@dataclass(frozen=True)
class ExportRequest:
    period: Period
    view: ViewMode
    host: str = ""

    def __post_init__(self) -> None:
        if self.view == ViewMode.DAY and not self.period.is_single:
            raise ValueError("Daily exports cover exactly one day.")

    @classmethod
    def from_query_params(cls, params: Mapping[str, Any], *, require_host: bool = True) -> "ExportRequest":
        view = ViewMode.parse(_param(params, PARAM_VIEW) or ViewMode.DAY.value)
        day_text = _param(params, PARAM_DATE)
        start_text = _param(params, PARAM_START)
        end_text = _param(params, PARAM_END)
        if view == ViewMode.WEEK and start_text and end_text:
            period = Period.interval(start_text, end_text)
        elif view == ViewMode.WEEK:
            period = Period.week_ending(end_text or day_text)
        else:
            period = Period.single(day_text or start_text)
        host_text = _param(params, PARAM_HOST)
        if require_host or host_text:
            host_text = normalize_host(host_text)
        return cls(period=period, view=view, host=host_text)

    def to_query_params(self) -> dict[str, str]:
        params = {
            EXPORT_FLAG: "true",
            PARAM_VIEW: self.view.value,
            PARAM_DATE: format_date(self.period.end),
            PARAM_START: format_date(self.period.start),
            PARAM_END: format_date(self.period.end),
        }
        if self.host:
            params[PARAM_HOST] = self.host
        return params

    def page_query(self) -> str:
        """Parameters the export-mode page needs; the host only matters to the renderer."""
        params = self.to_query_params()
        params.pop(PARAM_HOST, None)
        return urlencode(params)

    def target_url(self) -> str:
        if not self.host:
            raise ValueError("Export request has no host to navigate to.")
        return f"{normalize_host(self.host)}/?{self.page_query()}"

    def endpoint_url(self, capture_url: str, output_format: str = "png") -> str:
        params = self.to_query_params()
        params[PARAM_FORMAT] = parse_output_format(output_format)
        return f"{capture_url}?{urlencode(params)}"

    def filename(self, output_format: str = "png") -> str:
        return f"Zona9_Report_{self.period.label()}.{parse_output_format(output_format)}"


def client_capture_filename(period: Period) -> str:
    return f"Zona9_Dashboard_Report_{period.label()}.png"


def period_from_dates(view: ViewMode, day: Any, start: Any = None, end: Any = None) -> Period:
    """Same period rules the export parser applies, for building requests from widget state."""
    if view == ViewMode.WEEK:
        if start is not None and end is not None:
            return Period.interval(start, end)
        return Period.week_ending(day)
    return Period.single(parse_date(day))
