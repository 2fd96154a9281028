"""Delivery channels for rendered notifications."""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .renderer import RenderedMessage
from ..utils.config import NotificationConfig
from ..utils.errors import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)


class DeliveryChannel(ABC):
    """External sink that transmits a rendered message to its recipients."""

    name = "channel"

    @abstractmethod
    def send(self, message: RenderedMessage) -> str:
        """
        Transmit a message.

        Returns:
            Message identifier assigned by the channel

        Raises:
            DeliveryError: If the channel rejects the message or is unreachable
        """


class LogDeliveryChannel(DeliveryChannel):
    """Development channel that logs messages instead of sending them."""

    name = "log"

    def send(self, message: RenderedMessage) -> str:
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(
            f"[DEV EMAIL] id={message_id} to={','.join(message.recipients)} "
            f"subject={message.subject!r} html={len(message.html)} chars"
        )
        return message_id


class ResendDeliveryChannel(DeliveryChannel):
    """Sends mail through the Resend HTTP API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 20.0,
        client: Optional[httpx.Client] = None
    ):
        self.api_key = (api_key or "").strip()
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    def send(self, message: RenderedMessage) -> str:
        if not self.api_key:
            raise ConfigurationError.missing("RESEND_API_KEY")

        payload = {
            "from": message.sender,
            "to": message.recipients,
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._client is not None:
                resp = self._client.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise DeliveryError.from_exception(self.name, exc, timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise DeliveryError.from_exception(self.name, exc) from exc

        if resp.status_code >= 400:
            raise DeliveryError.from_response(self.name, resp.status_code, resp.text)

        try:
            body: Any = resp.json()
        except ValueError:
            body = {}
        message_id = body.get("id") if isinstance(body, dict) else None
        if not message_id:
            raise DeliveryError.from_response(self.name, resp.status_code, "response carried no message id")
        return message_id


class SESDeliveryChannel(DeliveryChannel):
    """Sends mail through Amazon SES."""

    name = "ses"

    def __init__(self, region: str = "us-east-1", timeout: float = 20.0, client: Any = None):
        if client is None:
            config = BotoConfig(
                region_name=region,
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 0},
            )
            client = boto3.client("ses", config=config)
        self.client = client
        logger.info(f"Initialized SESDeliveryChannel: region={region}")

    def send(self, message: RenderedMessage) -> str:
        body = {"Html": {"Data": message.html, "Charset": "UTF-8"}}
        if message.text:
            body["Text"] = {"Data": message.text, "Charset": "UTF-8"}

        try:
            response = self.client.send_email(
                Source=message.sender,
                Destination={"ToAddresses": message.recipients},
                Message={
                    "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                    "Body": body,
                },
            )
        except ClientError as exc:
            raise DeliveryError.from_client_error(exc, self.name) from exc
        except BotoCoreError as exc:
            raise DeliveryError.from_exception(self.name, exc) from exc

        return response["MessageId"]


def build_channel(config: NotificationConfig) -> DeliveryChannel:
    """
    Create the delivery channel named by ``config.provider``.

    Supported providers: ``log`` (development), ``resend`` and ``ses``.
    """
    provider = (config.provider or "log").strip().lower()
    if provider in ("log", "dev"):
        return LogDeliveryChannel()
    if provider == "resend":
        return ResendDeliveryChannel(
            api_key=config.resend_api_key,
            api_url=config.resend_api_url,
            timeout=config.timeout_seconds,
        )
    if provider == "ses":
        return SESDeliveryChannel(region=config.aws_region, timeout=config.timeout_seconds)
    raise ConfigurationError.invalid("notification.provider", provider)
