import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from models.access_log_store import AccessLogStore, clamp_limit
from models.directory_store import DirectoryStore
from models.entities import AccessAttempt, AccessLogEntry, EnrolledIdentity, IdentityStatus
from services.alert_channels import AlertChannel, MailTransport
from services.background_tasks import BackgroundTaskRunner, DiagnosticsSink
from services.credential_matcher import CredentialMatcher
from services.errors import StoreUnavailableError

FIXED_NOW = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


def make_identity(identity_id: int, **overrides) -> EnrolledIdentity:
    """Active, enrolled identity with sensible defaults"""
    data = dict(
        id=identity_id,
        display_name=f"Employee {identity_id}",
        department="Production",
        role="Operator",
        status=IdentityStatus.ACTIVE,
        enrolled=True,
    )
    data.update(overrides)
    return EnrolledIdentity(**data)


class FakeDirectoryStore(DirectoryStore):
    """In-memory directory used by matcher and API tests"""

    def __init__(self, identities: List[EnrolledIdentity] = None):
        self.identities = list(identities or [])
        self.unavailable = False
        self.touch_fails = False
        self.touched: Dict[int, datetime] = {}
        self.list_calls = 0

    async def list_candidates(self) -> List[EnrolledIdentity]:
        self.list_calls += 1
        if self.unavailable:
            raise StoreUnavailableError("directory", "connection refused")
        return [identity for identity in self.identities if identity.is_candidate]

    async def touch_last_access(self, identity_id: int, at: datetime) -> None:
        if self.touch_fails:
            raise StoreUnavailableError("directory", "write timeout")
        self.touched[identity_id] = at
        for identity in self.identities:
            if identity.id == identity_id:
                identity.last_access_at = at

    async def get_identity(self, identity_id: int) -> Optional[EnrolledIdentity]:
        return next((i for i in self.identities if i.id == identity_id), None)

    async def enroll(self, identity_id, face_template=None, fingerprint_template=None, card_id=None):
        identity = await self.get_identity(identity_id)
        if identity is None:
            return None
        identity.face_template = face_template
        identity.fingerprint_template = fingerprint_template
        identity.card_id = card_id
        identity.enrolled = True
        return identity

    async def count_identities(self) -> int:
        return len(self.identities)


class FakeAccessLogStore(AccessLogStore):
    """In-memory append-only log"""

    def __init__(self):
        self.attempts: List[AccessAttempt] = []
        self.fails = False

    async def append(self, attempt: AccessAttempt) -> AccessAttempt:
        if self.fails:
            raise StoreUnavailableError("access log", "disk full")
        self.attempts.append(attempt)
        return attempt

    async def recent(self, limit: int = 50) -> List[AccessLogEntry]:
        newest = sorted(self.attempts, key=lambda a: a.occurred_at, reverse=True)
        return [AccessLogEntry(attempt=a) for a in newest[:clamp_limit(limit)]]


class FakeChannel(AlertChannel):
    """Channel that records calls and optionally fails or hangs"""

    def __init__(self, name: str, error: Exception = None, delay: float = 0.0):
        self.name = name
        self.method_label = f"{name} (fake)"
        self.error = error
        self.delay = delay
        self.calls = []

    async def send(self, alert_category: str, message: str, occurred_at: datetime) -> None:
        self.calls.append((alert_category, message, occurred_at))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error


class RecordingTransport(MailTransport):
    """Mail transport that records messages; addresses in fail_for raise"""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, to: str, subject: str, body: str) -> None:
        if to in self.fail_for:
            raise ConnectionError(f"mailbox {to} rejected")
        self.sent.append((to, subject, body))


@pytest.fixture
def diagnostics():
    return DiagnosticsSink()


@pytest.fixture
def background(diagnostics):
    return BackgroundTaskRunner(diagnostics)


@pytest.fixture
def directory():
    return FakeDirectoryStore()


@pytest.fixture
def access_log():
    return FakeAccessLogStore()


@pytest.fixture
def matcher(directory, access_log, background):
    return CredentialMatcher(directory, access_log, background, clock=lambda: FIXED_NOW)


def fake_channels(**errors) -> Dict[str, FakeChannel]:
    """mail/sms/chat fakes; pass e.g. sms=RuntimeError("boom") to make one fail"""
    return {name: FakeChannel(name, error=errors.get(name)) for name in ("mail", "sms", "chat")}
