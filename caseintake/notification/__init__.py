"""Notification assembly, rendering and delivery."""

from .assembler import assemble_submission
from .dispatcher import NotificationDispatcher
from .channels import DeliveryChannel, build_channel

__all__ = [
    'assemble_submission',
    'NotificationDispatcher',
    'DeliveryChannel',
    'build_channel'
]
