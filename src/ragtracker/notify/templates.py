"""HTML e-mail templates for the dashboard and reminder notifications.

Templates are ``str.format`` strings; every interpolated value is escaped first.
"""

from __future__ import annotations

from html import escape

from ragtracker.core.digest import DashboardDigest, DigestLine, ReminderEntry

RAG_COLORS = {"Red": "#da3633", "Amber": "#d29922", "Green": "#3fb950"}

_SECTION_TITLES = {"Red": "Needs Attention", "Amber": "Under Watch", "Green": "On Track"}

_LAYOUT = """<!DOCTYPE html><html><body style="font-family:-apple-system,sans-serif;background:#f5f5f5;padding:32px">
<div style="max-width:{width}px;margin:0 auto;background:#fff;border-radius:12px;overflow:hidden">
  <div style="background:#0d1117;padding:24px 28px">
    <h1 style="color:#f0b429;margin:0;font-size:20px">RAG Tracker</h1>
    {subtitle}
  </div>
  <div style="padding:28px">{body}</div>
  <div style="background:#f9f9f9;padding:14px 28px;font-size:11px;color:#999;border-top:1px solid #eee">{footer}</div>
</div>
</body></html>"""

_COUNT_CELL = """<td style="padding:16px;text-align:center">
  <div style="font-size:32px;font-weight:700;color:{color}">{count}</div>
  <div style="color:#888;font-size:13px">{rag}</div>
</td>"""

_RAG_ROW = """<tr>
  <td style="padding:10px 12px;border-bottom:1px solid #eee"><strong>{project}</strong></td>
  <td style="padding:10px 12px;border-bottom:1px solid #eee;color:#555;font-size:13px">{pm}</td>
  <td style="padding:10px 12px;border-bottom:1px solid #eee;color:#555;font-size:12px">{reason}</td>
</tr>"""

DASHBOARD_SUBJECT = (
    "RAG Dashboard — Week {week_key} | {red} Red · {amber} Amber · {green} Green"
)
REMINDER_SUBJECT = "Reminder: Submit your RAG updates for Week {week_key}"


def _rag_section(rag: str, lines: list[DigestLine]) -> str:
    if not lines:
        return ""
    rows = "".join(
        _RAG_ROW.format(
            project=escape(line.project_name),
            pm=escape(line.pm_name or "—"),
            reason=escape(line.reason),
        )
        for line in lines
    )
    return (
        f'<h3 style="color:{RAG_COLORS[rag]};font-size:14px;margin:0 0 8px">'
        f"{_SECTION_TITLES[rag]}</h3>"
        f'<table style="width:100%;border-collapse:collapse;margin-bottom:20px">{rows}</table>'
    )


def dashboard_subject(digest: DashboardDigest) -> str:
    counts = digest.counts
    return DASHBOARD_SUBJECT.format(
        week_key=digest.week_key,
        red=counts["Red"],
        amber=counts["Amber"],
        green=counts["Green"],
    )


def render_dashboard(digest: DashboardDigest, *, sent_on: str) -> str:
    counts = digest.counts
    totals = "".join(
        _COUNT_CELL.format(color=RAG_COLORS[rag], count=counts[rag], rag=rag)
        for rag in ("Red", "Amber", "Green")
    )
    body = f'<table style="width:100%;margin-bottom:24px"><tr>{totals}</tr></table>'
    body += _rag_section("Red", digest.red)
    body += _rag_section("Amber", digest.amber)
    body += _rag_section("Green", digest.green)
    if digest.pending:
        pending_rows = "".join(
            f'<tr><td style="padding:8px 12px;color:#999;font-size:13px">{escape(name)}</td></tr>'
            for name in digest.pending
        )
        body += (
            f'<h3 style="margin:24px 0 8px;color:#888;font-size:14px">'
            f"Pending Updates ({len(digest.pending)})</h3>"
            f'<table style="width:100%;border-collapse:collapse">{pending_rows}</table>'
        )

    return _LAYOUT.format(
        width=700,
        subtitle=(
            '<p style="color:#7d8590;margin:6px 0 0;font-size:14px">'
            f"Weekly Project Health Dashboard — Week {escape(digest.week_key)}</p>"
        ),
        body=body,
        footer=f"Sent automatically by RAG Tracker · {escape(sent_on)}",
    )


def reminder_subject(week_key: str) -> str:
    return REMINDER_SUBJECT.format(week_key=week_key)


def render_reminder(entry: ReminderEntry, *, frontend_url: str) -> str:
    plural = "s" if len(entry.project_names) > 1 else ""
    items = "".join(f"<li><strong>{escape(name)}</strong></li>" for name in entry.project_names)
    body = (
        f"<p>Hi <strong>{escape(entry.pm_name)}</strong>,</p>"
        '<p style="color:#555">This is your weekly reminder to submit RAG status updates '
        f"for the following project{plural}:</p>"
        f'<ul style="color:#333;line-height:2">{items}</ul>'
        '<p style="color:#555">Please log in and submit your updates before end of day today.</p>'
        f'<a href="{escape(frontend_url, quote=True)}" style="display:inline-block;margin-top:8px;'
        "padding:12px 24px;background:#f0b429;color:#0d1117;font-weight:600;"
        'border-radius:8px;text-decoration:none">Open RAG Tracker</a>'
    )
    return _LAYOUT.format(
        width=560,
        subtitle="",
        body=body,
        footer="You are receiving this because you are a Project Manager in RAG Tracker.",
    )
