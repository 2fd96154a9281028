"""Send case notifications through a delivery channel."""

import logging
from typing import List, Optional

from .channels import DeliveryChannel
from .renderer import NotificationRenderer
from ..models.case import DeliveryReceipt, NotificationPayload
from ..utils.errors import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Renders a NotificationPayload and hands it to the delivery channel once.

    There is no retry and no queue: when the channel fails, the case is not
    delivered and the DeliveryError reaches the caller.
    """

    def __init__(
        self,
        channel: DeliveryChannel,
        sender: str,
        recipients: List[str],
        renderer: Optional[NotificationRenderer] = None,
        subject_prefix: str = ""
    ):
        if not recipients:
            raise ConfigurationError.missing("notification.recipients")
        self.channel = channel
        self.sender = sender
        self.recipients = list(recipients)
        self.renderer = renderer or NotificationRenderer(subject_prefix=subject_prefix)

    def dispatch(self, payload: NotificationPayload) -> DeliveryReceipt:
        """
        Deliver the notification for one case.

        Args:
            payload: Assembled NotificationPayload

        Returns:
            DeliveryReceipt with the channel's message identifier

        Raises:
            DeliveryError: If the channel fails
        """
        message = self.renderer.render(payload, self.sender, self.recipients)
        logger.info(
            f"Dispatching case {payload.case_id} via {self.channel.name} "
            f"to {', '.join(self.recipients)}"
        )

        try:
            message_id = self.channel.send(message)
        except DeliveryError as exc:
            logger.error(f"Delivery failed for case {payload.case_id}: {exc}")
            raise

        logger.info(f"Case {payload.case_id} delivered: message_id={message_id}")
        return DeliveryReceipt(
            message_id=message_id,
            recipients=self.recipients,
            channel=self.channel.name,
        )

    def send_test(self) -> DeliveryReceipt:
        """Send a canned message to verify the channel configuration."""
        message = self.renderer.render_test(self.sender, self.recipients)
        try:
            message_id = self.channel.send(message)
        except DeliveryError as exc:
            logger.error(f"Test delivery failed: {exc}")
            raise

        logger.info(f"Test message sent via {self.channel.name}: message_id={message_id}")
        return DeliveryReceipt(
            message_id=message_id,
            recipients=self.recipients,
            channel=self.channel.name,
            test=True,
        )
