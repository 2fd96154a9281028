"""Render case notifications to HTML and plain text with Jinja2."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ..models.case import NotificationPayload, utcnow

TEMPLATE_DIR = Path(__file__).parent / "templates"
NOT_PROVIDED = "Not provided"


def display_value(value: Optional[str]) -> str:
    """Placeholder for blank fields so the message never shows an empty gap."""
    text = (value or "").strip()
    return text or NOT_PROVIDED


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


@dataclass
class RenderedMessage:
    """A message ready for a delivery channel."""
    sender: str
    recipients: list
    subject: str
    html: str
    text: str = ""


class NotificationRenderer:
    """Turns a NotificationPayload into subject, HTML and text bodies."""

    def __init__(self, template_dir: Path = TEMPLATE_DIR, subject_prefix: str = ""):
        self.subject_prefix = subject_prefix
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["display_value"] = display_value
        self.env.filters["timestamp"] = format_timestamp

    def subject(self, payload: NotificationPayload) -> str:
        label = payload.record.service_label
        if label == "NOT SPECIFIED":
            label = "SERVICE"
        subject = f"New {label} Customer - {payload.case_id}"
        return f"{self.subject_prefix}{subject}" if self.subject_prefix else subject

    def render(self, payload: NotificationPayload, sender: str, recipients: list) -> RenderedMessage:
        context = {
            "record": payload.record,
            "case_id": payload.case_id,
            "image_count": payload.image_count,
            "images": payload.images,
            "submitted_at": payload.submitted_at,
            "sent_at": utcnow(),
        }
        return RenderedMessage(
            sender=sender,
            recipients=list(recipients),
            subject=self.subject(payload),
            html=self.env.get_template("case_notification.html").render(**context),
            text=self.env.get_template("case_notification.txt").render(**context),
        )

    def render_test(self, sender: str, recipients: list) -> RenderedMessage:
        sent_at = utcnow()
        return RenderedMessage(
            sender=sender,
            recipients=list(recipients),
            subject="Test Email - Case Intake Notifications",
            html=self.env.get_template("test_notification.html").render(sent_at=sent_at),
            text=f"Email delivery is working correctly. Time: {format_timestamp(sent_at)}",
        )
