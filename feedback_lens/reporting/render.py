"""Render analysis reports using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from feedback_lens.reporting import config
from feedback_lens.reporting.context import build_report_context
from feedback_lens.reporting.models import ProcessedReport

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown/slack templates don’t need HTML escaping – it breaks apostrophes etc.
# Disable autoescape to preserve original characters.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_report(
    report: ProcessedReport,
    *,
    title: str = "Feedback Analysis",
    source_file_name: Optional[str] = None,
) -> str:
    """Render a Slack-friendly markdown report from a ``ProcessedReport``."""

    context = build_report_context(report, title=title, source_file_name=source_file_name)
    template = _env.get_template("report.md.j2")
    return template.render(**context.to_dict())


def post_report_to_slack(
    *,
    report: ProcessedReport,
    client,
    channel: str,
    title: str = "Feedback Analysis",
    source_file_name: Optional[str] = None,
):
    """Send the rendered report to Slack *channel* using *client* (WebClient)."""

    # ------------------------------------------------------------------
    # 1. Post parent message
    # ------------------------------------------------------------------

    parent_resp = client.chat_postMessage(
        channel=channel,
        text=f"*Feedback Report for '{title}'*",
    )

    parent_ts = parent_resp["ts"]
    report_text = render_report(report, title=title, source_file_name=source_file_name)
    report_len = len(report_text)
    logger.debug("Report generated for '%s' channel=%s len=%d", title, channel, report_len)

    # ------------------------------------------------------------------
    # 2. Post threaded report (message or file)
    # ------------------------------------------------------------------

    if report_len < config.SLACK_MESSAGE_LIMIT:
        logger.debug("Posting report as chat message (len=%d)", report_len)
        client.chat_postMessage(
            channel=channel,
            text=report_text,
            thread_ts=parent_ts,
        )
    else:
        logger.debug("Uploading report as file (len=%d) via files_upload_v2", report_len)
        client.files_upload_v2(
            channel=channel,
            title=f"Feedback Report {title}",
            content=report_text,
            filename="feedback_report.md",
            thread_ts=parent_ts,
        )
    return parent_ts
