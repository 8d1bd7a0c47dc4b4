"""Render a user's metric rows as a downloadable report.

Four formats: ``csv``, ``markdown``, ``html`` and ``text``. Callers pass a
format that has already been through ``validate_export_format``.
"""

from __future__ import annotations

import csv
import html
import io
from dataclasses import dataclass
from datetime import datetime, timezone

from healthtrack.core.storage.models import HealthMetric

CSV_HEADER = ["Metric Type", "Value", "Unit", "Timestamp"]

_CONTENT_TYPES = {
    "csv": "text/csv",
    "markdown": "text/markdown",
    "html": "text/html",
    "text": "text/plain",
}

_EXTENSIONS = {
    "csv": "csv",
    "markdown": "md",
    "html": "html",
    "text": "txt",
}

_HTML_STYLE = """\
    body { font-family: Arial, sans-serif; margin: 20px; }
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #4CAF50; color: white; }"""


@dataclass
class ExportedReport:
    """A rendered report ready to be returned as an attachment."""

    content: str
    content_type: str
    filename: str
    format: str
    row_count: int


def format_value(value: float) -> str:
    """Render a reading without a trailing ``.0`` on whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _display_time(raw: str) -> str:
    try:
        moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return raw
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def report_filename(user_name: str, fmt: str, generated_at: datetime) -> str:
    return f"health-report-{user_name}-{generated_at.date().isoformat()}.{_EXTENSIONS[fmt]}"


def render_csv(metrics: list[HealthMetric]) -> str:
    """Every field quoted; embedded quotes doubled."""
    buffer = io.StringIO()
    buffer.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for m in metrics:
        writer.writerow([m.metric_type, format_value(m.value), m.unit or "", m.timestamp])
    return buffer.getvalue()


def render_markdown(
    user_name: str, metrics: list[HealthMetric], days: int, generated_at: datetime
) -> str:
    lines = [
        f"# Health Report for {user_name}",
        "",
        f"Generated: {_display_time(generated_at.isoformat())}",
        f"Period: Last {days} days",
        "",
        "## Metrics",
        "",
        "| Metric Type | Value | Unit | Timestamp |",
        "|---|---|---|---|",
    ]
    for m in metrics:
        lines.append(
            f"| {m.metric_type} | {format_value(m.value)} | {m.unit or '-'} "
            f"| {_display_time(m.timestamp)} |"
        )
    return "\n".join(lines) + "\n"


def render_html(
    user_name: str, metrics: list[HealthMetric], days: int, generated_at: datetime
) -> str:
    name = html.escape(user_name)
    rows = "".join(
        "<tr>"
        f"<td>{html.escape(m.metric_type)}</td>"
        f"<td>{html.escape(format_value(m.value))}</td>"
        f"<td>{html.escape(m.unit or '-')}</td>"
        f"<td>{html.escape(_display_time(m.timestamp))}</td>"
        "</tr>"
        for m in metrics
    )
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Health Report - {name}</title>
  <style>
{_HTML_STYLE}
  </style>
</head>
<body>
  <h1>Health Report for {name}</h1>
  <p>Generated: {html.escape(_display_time(generated_at.isoformat()))}</p>
  <p>Period: Last {days} days</p>
  <table>
    <tr><th>Metric Type</th><th>Value</th><th>Unit</th><th>Timestamp</th></tr>
    {rows}
  </table>
</body>
</html>
"""


def render_text(
    user_name: str, metrics: list[HealthMetric], days: int, generated_at: datetime
) -> str:
    lines = [
        f"HEALTH REPORT FOR {user_name.upper()}",
        f"Generated: {_display_time(generated_at.isoformat())}",
        f"Period: Last {days} days",
        "",
    ]
    for m in metrics:
        lines.append(
            f"{m.metric_type}: {format_value(m.value)} {m.unit or ''} - {_display_time(m.timestamp)}"
        )
    return "\n".join(lines) + "\n"


def export_report(
    user_name: str,
    metrics: list[HealthMetric],
    *,
    fmt: str,
    days: int,
    generated_at: datetime | None = None,
) -> ExportedReport:
    """Render ``metrics`` (already filtered and ordered) in ``fmt``."""
    generated = generated_at or datetime.now(timezone.utc)
    if fmt == "csv":
        content = render_csv(metrics)
    elif fmt == "markdown":
        content = render_markdown(user_name, metrics, days, generated)
    elif fmt == "html":
        content = render_html(user_name, metrics, days, generated)
    elif fmt == "text":
        content = render_text(user_name, metrics, days, generated)
    else:
        raise ValueError(f"Unknown export format: {fmt!r}")

    return ExportedReport(
        content=content,
        content_type=_CONTENT_TYPES[fmt],
        filename=report_filename(user_name, fmt, generated),
        format=fmt,
        row_count=len(metrics),
    )
