"""Pure functions that render an Alert into per-channel content."""

from __future__ import annotations

import datetime
import json
from html import escape as html_escape
from typing import Any

from src.alerting.types import Alert, AlertSeverity
from src.notify.types import EmailContent

SMS_MAX_LENGTH = 160
SYSTEM_NAME = "Delivery Monitoring"

# ── Colour mappings ─────────────────────────────────────────────

_EMAIL_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "#dc3545",  # red
    AlertSeverity.WARNING: "#ffc107",   # amber
    AlertSeverity.INFO: "#17a2b8",      # teal
}

_CHAT_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "danger",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.INFO: "good",
}


def _fmt_time(ts: float) -> str:
    dt = datetime.datetime.fromtimestamp(ts, datetime.UTC)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _metric_lines(alert: Alert) -> list[str]:
    """Human-readable metric lines, skipping empty values."""
    m = alert.metrics
    lines: list[str] = []
    if m.failure_rate:
        lines.append(f"Failure Rate: {m.failure_rate:.1f}%")
    if m.error_count:
        lines.append(f"Error Count: {m.error_count}")
    if m.affected_deliveries:
        lines.append(f"Affected Deliveries: {m.affected_deliveries}")
    if m.time_range:
        lines.append(f"Time Range: {m.time_range}")
    return lines


# ── Email ───────────────────────────────────────────────────────


def render_email_subject(alert: Alert) -> str:
    return f"[{alert.severity.value.upper()}] {SYSTEM_NAME} Alert: {alert.title}"


def render_email_text(alert: Alert) -> str:
    """Plain-text alternative for mail clients without HTML."""
    lines = [
        f"[{alert.severity.value.upper()}] {alert.title}",
        f"Alert ID: {alert.alert_id}",
        "",
        alert.description,
        "",
    ]
    if alert.affected_services:
        lines.append(f"Affected Services: {', '.join(alert.affected_services)}")
    lines.extend(_metric_lines(alert))
    lines.append(f"Created: {_fmt_time(alert.created_at)}")
    lines.append(f"Escalation Level: {alert.escalation_level}")
    lines.extend([
        "",
        f"This is an automated alert from the {SYSTEM_NAME} system.",
        "Please investigate and acknowledge this alert in the admin dashboard.",
    ])
    return "\n".join(lines)


def render_email_html(alert: Alert) -> str:
    color = _EMAIL_COLORS.get(alert.severity, "#6c757d")
    parts: list[str] = [
        "<!DOCTYPE html>",
        "<html><head><style>",
        "body { font-family: Arial, sans-serif; margin: 0; padding: 20px; }",
        f".alert-header {{ background-color: {color}; color: white; padding: 15px;"
        " border-radius: 5px 5px 0 0; }",
        ".alert-body { border: 1px solid #ddd; border-top: none; padding: 20px;"
        " border-radius: 0 0 5px 5px; }",
        ".metric { margin: 10px 0; }",
        ".metric-label { font-weight: bold; }",
        ".context { background-color: #f8f9fa; padding: 10px; border-radius: 3px;"
        " margin: 10px 0; }",
        ".footer { margin-top: 20px; font-size: 12px; color: #666; }",
        "</style></head><body>",
        '<div class="alert-header">',
        f"<h2>[{alert.severity.value.upper()}] {html_escape(alert.title)}</h2>",
        f"<p>Alert ID: {html_escape(alert.alert_id)}</p>",
        "</div>",
        '<div class="alert-body">',
        f"<p><strong>Description:</strong> {html_escape(alert.description)}</p>",
    ]

    if alert.affected_services:
        services = html_escape(", ".join(alert.affected_services))
        parts.append(
            '<div class="metric"><span class="metric-label">Affected Services:</span>'
            f'<div class="service-list">{services}</div></div>'
        )

    metric_lines = _metric_lines(alert)
    if metric_lines:
        items = "".join(f"<li>{html_escape(line)}</li>" for line in metric_lines)
        parts.append(
            '<div class="metric"><span class="metric-label">Metrics:</span>'
            f"<ul>{items}</ul></div>"
        )

    parts.append(
        '<div class="metric"><span class="metric-label">Created:</span> '
        f"{_fmt_time(alert.created_at)}</div>"
    )
    parts.append(
        '<div class="metric"><span class="metric-label">Escalation Level:</span> '
        f"{alert.escalation_level}</div>"
    )

    if alert.context:
        context_json = json.dumps(alert.context, indent=2, default=str, sort_keys=True)
        parts.append(
            '<div class="context"><strong>Additional Context:</strong>'
            f"<pre>{html_escape(context_json)}</pre></div>"
        )

    parts.extend([
        "</div>",
        '<div class="footer">',
        f"<p>This is an automated alert from the {SYSTEM_NAME} system.</p>",
        "<p>Please investigate and acknowledge this alert in the admin dashboard.</p>",
        "</div>",
        "</body></html>",
    ])
    return "\n".join(parts)


def render_email(alert: Alert) -> EmailContent:
    return EmailContent(
        subject=render_email_subject(alert),
        html=render_email_html(alert),
        text=render_email_text(alert),
    )


# ── SMS ─────────────────────────────────────────────────────────


def render_sms(alert: Alert) -> str:
    """Single-line SMS, never longer than SMS_MAX_LENGTH.

    Severity, title, failure rate and alert id come first; the service list
    goes last since it is the first thing lost to truncation.
    """
    message = f"[{alert.severity.value.upper()}] Alert: {alert.title}"
    if alert.metrics.failure_rate:
        message += f" - Failure Rate: {alert.metrics.failure_rate:.1f}%"
    message += f" - ID: {alert.alert_id}"
    if alert.affected_services:
        message += f" - Services: {', '.join(alert.affected_services)}"

    message = " ".join(message.split())
    if len(message) > SMS_MAX_LENGTH:
        message = message[: SMS_MAX_LENGTH - 3] + "..."
    return message


# ── Chat / webhook ──────────────────────────────────────────────


def render_chat_payload(alert: Alert) -> dict[str, Any]:
    """Slack-compatible attachment payload."""
    fields: list[dict[str, Any]] = [
        {"title": "Alert ID", "value": alert.alert_id, "short": True},
        {"title": "Severity", "value": alert.severity.value.upper(), "short": True},
        {"title": "Created", "value": _fmt_time(alert.created_at), "short": True},
        {"title": "Escalation Level", "value": str(alert.escalation_level), "short": True},
    ]
    if alert.affected_services:
        fields.append({
            "title": "Affected Services",
            "value": ", ".join(alert.affected_services),
            "short": False,
        })

    metric_lines = [
        line for line in _metric_lines(alert)
        if not line.startswith("Affected Deliveries")
    ]
    if metric_lines:
        fields.append({"title": "Metrics", "value": "\n".join(metric_lines), "short": False})

    return {
        "text": f"{SYSTEM_NAME} Alert: {alert.title}",
        "attachments": [
            {
                "color": _CHAT_COLORS.get(alert.severity, "#95a5a6"),
                "title": alert.title,
                "text": alert.description,
                "fields": fields,
                "footer": SYSTEM_NAME,
                "ts": int(alert.created_at),
            }
        ],
    }


def render_webhook_payload(alert: Alert) -> dict[str, Any]:
    """Flat JSON document for generic webhook consumers."""
    return {
        "alertId": alert.alert_id,
        "type": alert.type.value,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "title": alert.title,
        "description": alert.description,
        "affectedServices": list(alert.affected_services),
        "metrics": alert.metrics.model_dump(mode="json", exclude_none=True),
        "context": json.loads(json.dumps(alert.context, default=str)),
        "createdAt": _fmt_time(alert.created_at),
        "escalationLevel": alert.escalation_level,
    }
