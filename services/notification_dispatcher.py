"""
Notification Dispatcher Service

Fans one alert out to the mail, SMS-gateway and chat-webhook channels at the
same time and aggregates the per-channel outcomes. Fire alerts additionally
wake every connected live client through the broadcast channel.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Mapping, Optional

from config import CHANNEL_TIMEOUT_SECONDS
from models.entities import AlertChannelOutcome, AlertDispatchResult, utcnow
from services.alert_channels import AlertChannel
from services.errors import ChannelFailure, ValidationFailure
from streaming.broadcast_channel import BroadcastChannel, FireAlarmEvent

logger = logging.getLogger(__name__)

TOTAL_CHANNELS = 3


class AlertCategory(str, Enum):
    """Known alert categories"""
    FIRE_EMERGENCY = "FIRE EMERGENCY"
    ACCESS_DENIED = "ACCESS DENIED"
    MOTION_DETECTED = "MOTION DETECTED"
    EMERGENCY = "EMERGENCY"


FIRE_CATEGORIES = {AlertCategory.FIRE_EMERGENCY.value, "FIRE"}


def is_fire_category(alert_category: str) -> bool:
    """Fire categories are the only ones that trigger the live alarm."""
    value = alert_category.value if isinstance(alert_category, AlertCategory) else alert_category
    return value.strip().upper() in FIRE_CATEGORIES


class NotificationDispatcher:
    """
    Concurrent multi-channel alert fan-out.

    Every channel runs inside its own failure boundary with a timeout. A
    raised exception or an expired timeout marks only that channel as
    failed; dispatch() itself never raises a channel error and always
    returns an outcome for every channel.
    """

    def __init__(
        self,
        channels: Mapping[str, AlertChannel],
        broadcast: BroadcastChannel,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if len(channels) != TOTAL_CHANNELS:
            raise ValueError(f"Expected {TOTAL_CHANNELS} channels, got {len(channels)}")
        self.channels: Dict[str, AlertChannel] = dict(channels)
        self.broadcast = broadcast
        self.timeout = CHANNEL_TIMEOUT_SECONDS if timeout is None else timeout
        self.clock = clock

    async def dispatch(self, alert_category: str, message: str) -> AlertDispatchResult:
        """
        Send an alert through all channels concurrently.

        Args:
            alert_category: e.g. "FIRE EMERGENCY", "ACCESS DENIED"
            message: Free text alert body

        Returns:
            AlertDispatchResult with one outcome per channel

        Raises:
            ValidationFailure: category or message is empty
        """
        if isinstance(alert_category, AlertCategory):
            alert_category = alert_category.value
        if not alert_category or not alert_category.strip():
            raise ValidationFailure("alertCategory", "must not be empty")
        if not message or not message.strip():
            raise ValidationFailure("message", "must not be empty")

        alert_category = alert_category.strip()
        occurred_at = self.clock()
        logger.info(f"🚨 Sending {alert_category} via {len(self.channels)} platforms...")

        outcomes = await asyncio.gather(*(
            self._send_isolated(channel, alert_category, message, occurred_at)
            for channel in self.channels.values()
        ))

        result = AlertDispatchResult(
            per_channel={name: outcome for name, outcome in zip(self.channels, outcomes)},
            total_channels=TOTAL_CHANNELS,
            occurred_at=occurred_at,
        )
        logger.info(f"📊 Alert Summary: {result.successful_channels}/{result.total_channels} platforms successful")

        if is_fire_category(alert_category):
            delivered = self.broadcast.publish(FireAlarmEvent(occurred_at=occurred_at))
            logger.info(f"🔥 Fire alarm broadcast to {delivered} live client(s)")

        return result

    async def _send_isolated(
        self,
        channel: AlertChannel,
        alert_category: str,
        message: str,
        occurred_at: datetime,
    ) -> AlertChannelOutcome:
        try:
            await asyncio.wait_for(channel.send(alert_category, message, occurred_at), self.timeout)
        except asyncio.TimeoutError:
            detail = f"timed out after {self.timeout:g}s"
        except ChannelFailure as e:
            detail = e.detail
        except Exception as e:
            detail = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        else:
            return AlertChannelOutcome(
                channel_name=channel.name,
                succeeded=True,
                method_label=channel.method_label,
            )

        logger.error(f"❌ {channel.name} alert failed: {detail}")
        return AlertChannelOutcome(
            channel_name=channel.name,
            succeeded=False,
            method_label=channel.method_label,
            error_detail=detail,
        )
