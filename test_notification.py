"""Tests for submission assembly, rendering, dispatch and delivery channels."""

import json

import httpx
import pytest
from botocore.exceptions import ClientError

from caseintake.media.compressor import compress_batch
from caseintake.models.case import CaseRecord, ServiceType
from caseintake.notification.assembler import assemble_submission
from caseintake.notification.channels import (
    LogDeliveryChannel,
    ResendDeliveryChannel,
    SESDeliveryChannel,
    build_channel,
)
from caseintake.notification.dispatcher import NotificationDispatcher
from caseintake.notification.renderer import NOT_PROVIDED, NotificationRenderer, RenderedMessage
from caseintake.utils.config import NotificationConfig
from caseintake.utils.data_uri import encode_data_uri
from caseintake.utils.errors import ConfigurationError, DeliveryError, ErrorType, ValidationError
from conftest import RecordingChannel, make_image_bytes


@pytest.fixture
def two_images():
    return compress_batch([
        ("front.jpg", make_image_bytes((1600, 1200), color=(200, 0, 0))),
        ("back.jpg", make_image_bytes((1200, 1600), color=(0, 0, 200))),
    ])


def _message() -> RenderedMessage:
    return RenderedMessage(
        sender="Intake <intake@example.com>",
        recipients=["staff@example.com"],
        subject="New MOLD Customer - REG-1",
        html="<p>hi</p>",
        text="hi",
    )


# Records and assembly

def test_record_from_wire_dict_normalizes_blanks():
    record = CaseRecord.from_dict({
        "firstName": " John ", "lastName": "Doe", "phone": "555-1234",
        "email": None, "zipCode": 33101, "unexpected": "ignored",
    })

    assert record.first_name == "John"
    assert record.email == ""
    assert record.zip_code == "33101"
    assert record.full_name == "John Doe"
    assert not record.has_insurance


def test_service_type_labels():
    assert ServiceType.label_for("water-damage") == "WATER DAMAGE"
    assert ServiceType.label_for("Mold") == "MOLD"
    assert ServiceType.label_for("hail") == "HAIL"
    assert ServiceType.label_for("") == "NOT SPECIFIED"


def test_assembler_builds_payload_in_upload_order(john_doe, two_images):
    payload = assemble_submission(john_doe, "REG-TEST00001", two_images)

    assert payload.image_count == 2
    assert [image.filename for image in payload.images] == ["front.jpg", "back.jpg"]
    assert payload.images[0].data_uri == two_images[0].data_uri
    assert payload.images[0].size == two_images[0].encoded_size
    assert payload.record.full_name == "John Doe"


def test_assembler_accepts_wire_images(john_doe):
    uri = encode_data_uri(b"\xff\xd8" + b"\x00" * 2046, "image/jpeg")
    payload = assemble_submission(john_doe, "REG-1", [
        {"url": uri, "name": "a.jpg", "size": 999999},
        {"url": uri},
    ])

    assert payload.images[0].size == 2048
    assert payload.images[1].filename == "Image_2"


@pytest.mark.parametrize("record, missing", [
    ({"firstName": "", "lastName": "Doe", "phone": "555-1234"}, ["first_name"]),
    ({"firstName": "John", "lastName": "Doe", "phone": "  "}, ["phone"]),
    ({}, ["first_name", "last_name", "phone"]),
])
def test_assembler_rejects_missing_required_fields(record, missing):
    with pytest.raises(ValidationError) as excinfo:
        assemble_submission(record, "REG-1", [])
    assert excinfo.value.details["missing_fields"] == missing
    assert excinfo.value.context.error_type == ErrorType.VALIDATION_FAILED


def test_assembler_requires_case_id(john_doe):
    with pytest.raises(ValidationError) as excinfo:
        assemble_submission(john_doe, "", [])
    assert "case_id" in excinfo.value.details["missing_fields"]


# Rendering

def test_render_omits_insurance_and_description_when_empty(john_doe, two_images):
    payload = assemble_submission(john_doe, "REG-TEST00001", two_images)
    message = NotificationRenderer().render(payload, "from@example.com", ["staff@example.com"])

    assert "INSURANCE INFORMATION" not in message.html
    assert "DAMAGE DESCRIPTION" not in message.html
    assert "INSURANCE INFORMATION" not in message.text
    assert "REG-TEST00001" in message.html
    assert message.subject == "New SERVICE Customer - REG-TEST00001"


def test_render_uses_placeholder_for_blank_fields(john_doe):
    payload = assemble_submission(john_doe, "REG-1", [])
    message = NotificationRenderer().render(payload, "from@example.com", ["staff@example.com"])

    assert f"<strong>Address:</strong> {NOT_PROVIDED}" in message.html
    assert f"Email: {NOT_PROVIDED}" in message.text
    assert "DAMAGE PHOTOS" not in message.html
    assert "0 Images" in message.html


def test_render_includes_insurance_description_and_gallery(two_images):
    record = {
        "firstName": "Ana", "lastName": "Lopez", "phone": "305-555-0101",
        "serviceType": "roof", "insuranceCompany": "Citizens",
        "description": "Leak after storm <b>urgent</b>",
    }
    payload = assemble_submission(record, "REG-ROOF", two_images)
    message = NotificationRenderer(subject_prefix="[Intake] ").render(
        payload, "from@example.com", ["staff@example.com"]
    )

    assert "INSURANCE INFORMATION" in message.html
    assert "Citizens" in message.html
    assert f"<strong>Policy Number:</strong> {NOT_PROVIDED}" in message.html
    assert "Leak after storm &lt;b&gt;urgent&lt;/b&gt;" in message.html
    assert message.subject == "[Intake] New ROOF Customer - REG-ROOF"

    first = message.html.index(two_images[0].data_uri)
    second = message.html.index(two_images[1].data_uri)
    assert first < second
    assert f"Size: {round(two_images[0].encoded_size / 1024)} KB" in message.html
    assert "1. front.jpg" in message.text
    assert "2. back.jpg" in message.text


# Dispatch

def test_dispatch_sends_once_and_returns_receipt(john_doe, two_images):
    channel = RecordingChannel()
    dispatcher = NotificationDispatcher(channel, "from@example.com", ["staff@example.com"])

    receipt = dispatcher.dispatch(assemble_submission(john_doe, "REG-1", two_images))

    assert receipt.message_id == "msg-1"
    assert receipt.recipients == ["staff@example.com"]
    assert not receipt.test
    assert len(channel.messages) == 1
    assert channel.messages[0].recipients == ["staff@example.com"]


def test_dispatch_propagates_delivery_error(john_doe):
    failure = DeliveryError.from_response("recording", 422, "domain not verified")
    dispatcher = NotificationDispatcher(
        RecordingChannel(fail_with=failure), "from@example.com", ["staff@example.com"]
    )

    with pytest.raises(DeliveryError) as excinfo:
        dispatcher.dispatch(assemble_submission(john_doe, "REG-1", []))
    assert "domain not verified" in excinfo.value.message


def test_send_test_uses_canned_message():
    channel = RecordingChannel()
    dispatcher = NotificationDispatcher(channel, "from@example.com", ["staff@example.com"])

    receipt = dispatcher.send_test()

    assert receipt.test
    assert channel.messages[0].subject.startswith("Test Email")
    assert "Email System Working" in channel.messages[0].html


def test_dispatcher_requires_recipients():
    with pytest.raises(ConfigurationError):
        NotificationDispatcher(RecordingChannel(), "from@example.com", [])


# Channels

def test_resend_channel_posts_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "re_123"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    channel = ResendDeliveryChannel(api_key="key", client=client)

    assert channel.send(_message()) == "re_123"
    assert seen["auth"] == "Bearer key"
    assert seen["body"]["to"] == ["staff@example.com"]
    assert seen["body"]["subject"] == "New MOLD Customer - REG-1"


def test_resend_channel_rejection_carries_diagnostics():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text='{"message": "API key is invalid"}')

    client = httpx.Client(transport=httpx.MockTransport(handler))
    channel = ResendDeliveryChannel(api_key="bad", client=client)

    with pytest.raises(DeliveryError) as excinfo:
        channel.send(_message())
    assert excinfo.value.context.error_type == ErrorType.DELIVERY_AUTH_ERROR
    assert excinfo.value.details["status_code"] == 403
    assert "API key is invalid" in excinfo.value.details["response"]


def test_resend_channel_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    channel = ResendDeliveryChannel(api_key="key", client=client)

    with pytest.raises(DeliveryError) as excinfo:
        channel.send(_message())
    assert excinfo.value.context.error_type == ErrorType.DELIVERY_TIMEOUT


def test_resend_channel_requires_api_key():
    with pytest.raises(ConfigurationError):
        ResendDeliveryChannel(api_key="").send(_message())


class FakeSESClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def send_email(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {"MessageId": "ses-0001"}


def test_ses_channel_sends_html_and_text():
    fake = FakeSESClient()
    channel = SESDeliveryChannel(client=fake)

    assert channel.send(_message()) == "ses-0001"
    call = fake.calls[0]
    assert call["Destination"] == {"ToAddresses": ["staff@example.com"]}
    assert call["Message"]["Body"]["Html"]["Data"] == "<p>hi</p>"
    assert call["Message"]["Body"]["Text"]["Data"] == "hi"


def test_ses_channel_maps_client_error():
    error = ClientError(
        {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
        "SendEmail",
    )
    channel = SESDeliveryChannel(client=FakeSESClient(error=error))

    with pytest.raises(DeliveryError) as excinfo:
        channel.send(_message())
    assert excinfo.value.context.error_type == ErrorType.DELIVERY_REJECTED
    assert excinfo.value.details["error_code"] == "MessageRejected"
    assert "not verified" in excinfo.value.message


def test_build_channel_selects_provider():
    assert isinstance(build_channel(NotificationConfig(provider="log")), LogDeliveryChannel)
    assert isinstance(build_channel(NotificationConfig(provider="resend")), ResendDeliveryChannel)
    with pytest.raises(ConfigurationError):
        build_channel(NotificationConfig(provider="carrier-pigeon"))


def test_log_channel_returns_message_id():
    assert LogDeliveryChannel().send(_message()).startswith("log-")


def test_render_uses_placeholder_for_blank_zip_code(john_doe):
    record = dict(john_doe, city="Miami", state="FL")
    payload = assemble_submission(record, "REG-1", [])
    message = NotificationRenderer().render(payload, "from@example.com", ["staff@example.com"])

    assert f"Location: Miami, FL {NOT_PROVIDED}" in message.text
    assert f"<strong>Location:</strong> Miami, FL {NOT_PROVIDED}" in message.html


@pytest.mark.parametrize("image, reason", [
    ("data:image/jpeg;base64,AAAA", "expected an object"),
    ({"url": ["not", "a", "string"]}, "url must be"),
    ({"url": "", "size": "12kb"}, "size must be a byte count"),
    ({"url": "", "size": -1}, "must not be negative"),
])
def test_assembler_rejects_malformed_wire_images(john_doe, image, reason):
    with pytest.raises(ValidationError) as excinfo:
        assemble_submission(john_doe, "REG-1", [image])
    assert reason in excinfo.value.message
    assert excinfo.value.details["index"] == 0
