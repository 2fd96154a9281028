"""Shared pytest fixtures for the case intake tests."""

import io
import logging
import threading
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from caseintake.intake import IntakeService
from caseintake.notification.channels import DeliveryChannel
from caseintake.notification.renderer import RenderedMessage
from caseintake.storage.image_store import InMemoryImageStore
from caseintake.utils.config import Config
from caseintake.utils.errors import DeliveryError
from caseintake.utils.logging import _context_filter, clear_context


class RecordingChannel(DeliveryChannel):
    """Delivery channel that keeps messages in memory, optionally failing."""

    name = "recording"

    def __init__(self, fail_with: Optional[DeliveryError] = None):
        self.messages: List[RenderedMessage] = []
        self.fail_with = fail_with

    def send(self, message: RenderedMessage) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.messages.append(message)
        return f"msg-{len(self.messages)}"


def make_image_bytes(size=(1600, 1200), fmt="JPEG", mode="RGB", color=(180, 60, 40)) -> bytes:
    """Encode a solid-colour test image."""
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def config() -> Config:
    cfg = Config.default()
    cfg.notification.recipients = ["staff@example.com"]
    cfg.notification.sender = "Intake <intake@example.com>"
    cfg.server.public_base_url = "https://intake.example.com"
    return cfg


@pytest.fixture
def store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def service(config, store, channel) -> IntakeService:
    return IntakeService(config, store=store, channel=channel)


@pytest.fixture
def client(service) -> TestClient:
    from server import create_app

    return TestClient(create_app(service=service))


@pytest.fixture
def john_doe() -> dict:
    return {"firstName": "John", "lastName": "Doe", "phone": "555-1234"}


class ContextRecords(logging.Handler):
    """Handler that keeps records after the case-context filter has run."""

    def __init__(self):
        super().__init__()
        self.records: List[logging.LogRecord] = []
        self._records_lock = threading.Lock()
        self.addFilter(_context_filter)

    def emit(self, record: logging.LogRecord) -> None:
        with self._records_lock:
            self.records.append(record)


@pytest.fixture
def context_records():
    handler = ContextRecords()
    root = logging.getLogger("caseintake")
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    yield handler
    root.removeHandler(handler)
    root.setLevel(previous_level)
    clear_context()
