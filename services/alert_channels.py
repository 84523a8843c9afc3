"""
Alert Channel Senders

Three independent delivery mechanisms for emergency notifications:

- MailChannel:        one message to the security mailbox over SMTP
- SmsGatewayChannel:  email-to-SMS gateway, one message per phone number
- ChatWebhookChannel: GET webhook per chat recipient (CallMeBot style URL)

A sender raises on failure; isolating one channel from the others is the
dispatcher's job. Recipients are passed in as typed records, loaded from
data/config.json by build_default_channels().
"""

import abc
import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

import config
from services.errors import ChannelFailure

logger = logging.getLogger(__name__)


# =============================================================================
# Recipients
# =============================================================================

@dataclass(frozen=True)
class SmsRecipient:
    """Phone reachable through a carrier's email-to-SMS gateway"""
    phone: str
    name: str
    carrier: Optional[str] = None


@dataclass(frozen=True)
class ChatRecipient:
    """Chat webhook recipient (phone + personal API key)"""
    phone: str
    api_key: str
    name: str


def load_sms_recipients(raw: Iterable[Mapping]) -> List[SmsRecipient]:
    """Build SmsRecipient records from config dictionaries."""
    return [
        SmsRecipient(phone=str(item["phone"]), name=item.get("name", ""), carrier=item.get("carrier"))
        for item in raw
    ]


def load_chat_recipients(raw: Iterable[Mapping]) -> List[ChatRecipient]:
    """Build ChatRecipient records from config dictionaries."""
    return [
        ChatRecipient(phone=str(item["phone"]), api_key=str(item["api_key"]), name=item.get("name", ""))
        for item in raw
    ]


# =============================================================================
# Message Formatting
# =============================================================================

def normalize_phone_number(phone: str, country_code: Optional[str] = None) -> str:
    """
    Strip whitespace and the country code prefix.

    Example:
        >>> normalize_phone_number("+94 76 328 8750", "+94")
        '763288750'
    """
    country_code = config.SMS_COUNTRY_CODE if country_code is None else country_code
    number = "".join(phone.split())
    if country_code and number.startswith(country_code):
        number = number[len(country_code):]
    return number


def sms_gateway_address(
    phone: str,
    carrier: Optional[str],
    carrier_domains: Mapping[str, str],
    default_carrier: str,
    country_code: Optional[str] = None,
) -> str:
    """Map a phone number to <number>@<carrier gateway domain>."""
    domain = carrier_domains.get((carrier or "").lower())
    if domain is None:
        domain = carrier_domains[default_carrier]
    return f"{normalize_phone_number(phone, country_code)}@{domain}"


def format_sms_text(alert_category: str, message: str, occurred_at: datetime,
                    site: Optional[str] = None, max_length: Optional[int] = None) -> str:
    """Plain text alert truncated to the SMS limit."""
    site = site or config.SITE_NAME
    max_length = config.SMS_MAX_LENGTH if max_length is None else max_length
    text = (
        f"FACTORY ALERT\n"
        f"Type: {alert_category}\n"
        f"{message}\n"
        f"Time: {occurred_at.strftime('%H:%M:%S')}\n"
        f"Location: {site}\n"
        f"URGENT!"
    )
    return text[:max_length]


def format_chat_text(alert_category: str, message: str, occurred_at: datetime, site: Optional[str] = None) -> str:
    site = site or config.SITE_NAME
    return (
        f"🚨 *FACTORY ALERT*\n\n"
        f"*Type:* {alert_category}\n"
        f"*Message:* {message}\n"
        f"*Time:* {occurred_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"*Location:* {site}\n\n"
        f"⚠️ *IMMEDIATE ACTION REQUIRED*"
    )


def format_mail_body(alert_category: str, message: str, occurred_at: datetime, site: Optional[str] = None) -> str:
    site = site or config.SITE_NAME
    return (
        f"Security alert from {site}\n\n"
        f"Alert type: {alert_category}\n"
        f"Message: {message}\n"
        f"Time: {occurred_at.isoformat()}\n\n"
        f"Please take immediate action."
    )


# =============================================================================
# Mail Transport
# =============================================================================

class MailTransport(abc.ABC):
    """Sends one plain-text email. Shared by the mail and SMS channels."""

    @abc.abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class SmtpMailTransport(MailTransport):
    """
    SMTP transport using smtplib.

    smtplib is blocking, so every send runs in a worker thread and
    concurrent sends use separate connections.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.host = host or config.SMTP_HOST
        self.port = config.SMTP_PORT if port is None else port
        self.username = config.SMTP_USERNAME if username is None else username
        self.password = config.SMTP_PASSWORD if password is None else password
        self.use_tls = config.SMTP_USE_TLS if use_tls is None else use_tls
        self.sender = sender or config.ALERT_MAIL_FROM
        self.timeout = config.SMTP_TIMEOUT_SECONDS if timeout is None else timeout

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def _send_blocking(self, msg: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> None:
        msg = self._build_message(to, subject, body)
        await asyncio.to_thread(self._send_blocking, msg)


# =============================================================================
# Channels
# =============================================================================

class AlertChannel(abc.ABC):
    """One notification channel. send() raises on any delivery failure."""

    name: str = ""
    method_label: str = ""

    @abc.abstractmethod
    async def send(self, alert_category: str, message: str, occurred_at: datetime) -> None:
        ...


class MailChannel(AlertChannel):
    """Single alert email to the security mailbox."""

    name = "mail"
    method_label = "Transactional Mail (SMTP)"

    def __init__(self, transport: MailTransport, recipient: Optional[str] = None):
        self.transport = transport
        self.recipient = recipient or config.ALERT_MAIL_TO

    async def send(self, alert_category: str, message: str, occurred_at: datetime) -> None:
        subject = f"🚨 {alert_category} - {config.SITE_NAME}"
        body = format_mail_body(alert_category, message, occurred_at)
        await self.transport.send(self.recipient, subject, body)
        logger.info(f"📧 Alert email sent to {self.recipient}")


class SmsGatewayChannel(AlertChannel):
    """
    Email-to-SMS fan-out.

    All recipients are sent concurrently and every send is awaited. The
    channel is a single failure domain: if any recipient fails, the whole
    channel fails and the error names the failing recipients.
    """

    name = "sms"
    method_label = "Email-to-SMS Gateway"

    def __init__(
        self,
        transport: MailTransport,
        recipients: Sequence[SmsRecipient],
        carrier_domains: Optional[Mapping[str, str]] = None,
        default_carrier: Optional[str] = None,
        country_code: Optional[str] = None,
        max_length: Optional[int] = None,
    ):
        self.transport = transport
        self.recipients = list(recipients)
        self.carrier_domains = dict(carrier_domains or config.SMS_CARRIER_DOMAINS)
        self.default_carrier = default_carrier or config.DEFAULT_SMS_CARRIER
        self.country_code = config.SMS_COUNTRY_CODE if country_code is None else country_code
        self.max_length = config.SMS_MAX_LENGTH if max_length is None else max_length

        if self.default_carrier not in self.carrier_domains:
            raise ValueError(f"Default carrier '{self.default_carrier}' missing from carrier table")

    def address_for(self, recipient: SmsRecipient) -> str:
        return sms_gateway_address(
            recipient.phone,
            recipient.carrier,
            self.carrier_domains,
            self.default_carrier,
            self.country_code,
        )

    async def send(self, alert_category: str, message: str, occurred_at: datetime) -> None:
        if not self.recipients:
            raise ChannelFailure(self.name, "no SMS recipients configured")

        text = format_sms_text(alert_category, message, occurred_at, max_length=self.max_length)
        logger.info(f"📱 Sending SMS alerts to {len(self.recipients)} numbers...")

        results = await asyncio.gather(
            *(self.transport.send(self.address_for(r), "", text) for r in self.recipients),
            return_exceptions=True,
        )

        failures = [
            f"{recipient.name or recipient.phone}: {result}"
            for recipient, result in zip(self.recipients, results)
            if isinstance(result, BaseException)
        ]
        if failures:
            raise ChannelFailure(self.name, "; ".join(failures))

        logger.info(f"📞 SMS sent to: {', '.join(r.name for r in self.recipients)}")


class ChatWebhookChannel(AlertChannel):
    """
    Chat webhook (CallMeBot WhatsApp style): one GET per recipient with the
    URL-encoded message in the query string.
    """

    name = "chat"
    method_label = "Chat Webhook (CallMeBot)"

    def __init__(
        self,
        recipients: Sequence[ChatRecipient],
        url_template: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.recipients = list(recipients)
        self.url_template = url_template or config.CHAT_WEBHOOK_URL_TEMPLATE
        self.timeout = config.CHAT_WEBHOOK_TIMEOUT_SECONDS if timeout is None else timeout
        self._client = client

    def url_for(self, recipient: ChatRecipient, text: str) -> str:
        return self.url_template.format(
            phone=quote(recipient.phone, safe=""),
            text=quote(text, safe=""),
            api_key=quote(recipient.api_key, safe=""),
        )

    async def _get(self, client: httpx.AsyncClient, recipient: ChatRecipient, text: str) -> httpx.Response:
        # httpx error messages embed the request URL, which carries the API key
        try:
            response = await client.get(self.url_for(recipient, text))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ChannelFailure(self.name, f"HTTP {e.response.status_code}") from None
        except httpx.HTTPError as e:
            raise ChannelFailure(self.name, type(e).__name__) from None
        logger.info(f"💬 Chat alert sent to {recipient.name}: {response.status_code}")
        return response

    async def _send_all(self, client: httpx.AsyncClient, text: str):
        results = await asyncio.gather(
            *(self._get(client, r, text) for r in self.recipients),
            return_exceptions=True,
        )
        failures = []
        for recipient, result in zip(self.recipients, results):
            if isinstance(result, ChannelFailure):
                failures.append(f"{recipient.name or 'recipient'}: {result.detail}")
            elif isinstance(result, BaseException):
                failures.append(f"{recipient.name or 'recipient'}: {type(result).__name__}")
        if failures:
            raise ChannelFailure(self.name, "; ".join(failures))

    async def send(self, alert_category: str, message: str, occurred_at: datetime) -> None:
        if not self.recipients:
            raise ChannelFailure(self.name, "no chat recipients configured")

        text = format_chat_text(alert_category, message, occurred_at)

        if self._client is not None:
            await self._send_all(self._client, text)
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            await self._send_all(client, text)


def build_default_channels(transport: Optional[MailTransport] = None) -> Dict[str, AlertChannel]:
    """
    Build the three channels from config.py / data/config.json.

    Returns:
        Dict of channel name -> channel, in dispatch order
    """
    transport = transport or SmtpMailTransport()
    channels = [
        MailChannel(transport),
        SmsGatewayChannel(transport, load_sms_recipients(config.SMS_RECIPIENTS)),
        ChatWebhookChannel(load_chat_recipients(config.CHAT_RECIPIENTS)),
    ]
    return {channel.name: channel for channel in channels}
