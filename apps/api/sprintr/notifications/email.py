from __future__ import annotations

import html
import re

from sprintr.config import settings
from sprintr.task_fields import TASK_PRIORITY_LABELS, TASK_STATUS_LABELS, TASK_WORK_TYPE_LABELS

BRAND = "Sprintr"
FOOTER = "You are receiving this because you are watching this issue."


def escape_html(value: str | None) -> str:
  return html.escape(value or "", quote=True)


def format_email_text(value: str | None) -> str:
  if not value:
    return ""
  return escape_html(value).replace("\n", "<br />")


def absolute_url(path: str | None, base_url: str | None = None) -> str:
  if not path:
    return ""
  if re.match(r"^https?://", path, re.IGNORECASE):
    return path
  base = (settings.app_base_url if base_url is None else base_url).rstrip("/")
  if not base:
    return path
  return f"{base}{'' if path.startswith('/') else '/'}{path}"


def _label(labels: dict[str, str], value: str | None) -> str:
  if not value:
    return ""
  return labels.get(value, value)


def _detail_row(label: str, value: str) -> str:
  shown = escape_html(value) if value else "-"
  return (
    "<tr>"
    f'<td style="width:140px;padding:6px 0;color:#5e6c84;font-size:12px;vertical-align:top;">{label}</td>'
    f'<td style="padding:6px 0;color:#172b4d;font-size:14px;vertical-align:top;">{shown}</td>'
    "</tr>"
  )


def _section(heading: str, content: str) -> str:
  return (
    '<tr><td style="padding:0 24px 24px 24px;">'
    f'<div style="font-size:13px;color:#5e6c84;font-weight:600;margin-bottom:8px;">{heading}</div>'
    f'<div style="font-size:14px;line-height:1.5;color:#172b4d;">{content}</div>'
    "</td></tr>"
  )


def build_notification_email_html(
  *,
  title: str,
  body: str,
  task_name: str | None = None,
  task_summary: str | None = None,
  status: str | None = None,
  work_type: str | None = None,
  assignee: str | None = None,
  reporter: str | None = None,
  priority: str | None = None,
  description: str | None = None,
  link: str | None = None,
  show_empty_meta: bool = True,
) -> str:
  status_label = _label(TASK_STATUS_LABELS, status)
  details = [
    ("Status", status_label),
    ("Work type", _label(TASK_WORK_TYPE_LABELS, work_type)),
    ("Assignee", assignee or ""),
    ("Priority", _label(TASK_PRIORITY_LABELS, priority)),
    ("Reporter", reporter or ""),
  ]
  detail_rows = "".join(_detail_row(label, value) for label, value in details if show_empty_meta or value)

  safe_title = escape_html(title)
  safe_name = escape_html(task_name)
  safe_summary = escape_html(task_summary)
  if safe_name:
    issue_line = f"{safe_name} - {safe_summary}" if safe_summary else safe_name
  else:
    issue_line = safe_summary

  status_badge = ""
  if status_label:
    status_badge = (
      '<span style="display:inline-block;padding:4px 10px;border-radius:999px;background:#e6f0ff;'
      f'color:#0747a6;font-size:12px;font-weight:600;">{escape_html(status_label)}</span>'
    )

  safe_description = format_email_text(description)
  description_section = _section("Description", safe_description) if safe_description else ""

  link_url = absolute_url(link)
  cta = ""
  if link_url:
    cta = (
      f'<a href="{escape_html(link_url)}" style="display:inline-block;background:#0052cc;color:#ffffff;'
      'text-decoration:none;padding:10px 16px;border-radius:4px;font-size:14px;font-weight:600;">View issue</a>'
    )

  issue_html = f'<div style="font-size:14px;color:#42526e;">{issue_line}</div>' if issue_line else ""

  return f"""<!doctype html>
<html>
  <head>
    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{safe_title}</title>
  </head>
  <body style="margin:0;padding:0;background-color:#f4f5f7;font-family:Arial, Helvetica, sans-serif;">
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="border-collapse:collapse;background-color:#f4f5f7;">
      <tr>
        <td align="center" style="padding:24px 12px;">
          <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="border-collapse:collapse;background-color:#ffffff;border:1px solid #dfe1e6;border-radius:6px;overflow:hidden;">
            <tr>
              <td style="background:#0747a6;color:#ffffff;padding:16px 24px;font-size:16px;font-weight:600;">{BRAND}</td>
            </tr>
            <tr>
              <td style="padding:24px 24px 12px 24px;">
                <div style="font-size:12px;color:#5e6c84;margin-bottom:8px;">Notification</div>
                <div style="font-size:18px;color:#172b4d;font-weight:600;margin-bottom:6px;">{safe_title}</div>
                {issue_html}
                <div style="margin-top:12px;">{status_badge}</div>
              </td>
            </tr>
            <tr>
              <td style="padding:0 24px 16px 24px;">
                <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="border-collapse:collapse;">
                  {detail_rows}
                </table>
              </td>
            </tr>
            {_section("Update", format_email_text(body))}
            {description_section}
            <tr>
              <td style="padding:0 24px 24px 24px;">{cta}</td>
            </tr>
            <tr>
              <td style="padding:16px 24px;background:#fafbfc;color:#7a869a;font-size:12px;">{FOOTER}</td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>"""
