"""
Credential Matcher Service

Decides whether a presented probe (face template, access card, fingerprint
template) belongs to an active, enrolled identity.

Strategy order (first strategy that finds a candidate wins):
    1. Face        - first FACE_PREFIX_LENGTH characters must be equal
    2. Card        - exact card id equality
    3. Fingerprint - first FINGERPRINT_PREFIX_LENGTH characters must be equal

Each strategy returns the FIRST eligible candidate in directory order; this
is not a ranked best-match search.

Known weak point: the template comparison is a fixed-length prefix check on
opaque strings, not a biometric similarity metric. It is kept exactly as is
for compatibility with existing enrollments until a real comparison is
chosen.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config import DEFAULT_LOCATION, FACE_PREFIX_LENGTH, FINGERPRINT_PREFIX_LENGTH, MAX_LOCATION_LENGTH
from models.access_log_store import AccessLogStore
from models.directory_store import DirectoryStore
from models.entities import (
    AccessAttempt,
    AccessMethod,
    AccessOutcome,
    EnrolledIdentity,
    utcnow,
)
from services.background_tasks import BackgroundTaskRunner
from services.errors import ValidationFailure

logger = logging.getLogger(__name__)

UNKNOWN_DISPLAY_NAME = "Unknown"


@dataclass(frozen=True)
class CredentialProbe:
    """Credential material presented at the door. Every field is optional."""
    face_template: Optional[str] = None
    fingerprint_template: Optional[str] = None
    card_id: Optional[str] = None

    def requested_method(self) -> AccessMethod:
        """Method label for a denial: Face > Card > Fingerprint > Unknown."""
        if self.face_template:
            return AccessMethod.FACE_MATCH
        if self.card_id:
            return AccessMethod.CARD_MATCH
        if self.fingerprint_template:
            return AccessMethod.FINGERPRINT_MATCH
        return AccessMethod.UNKNOWN


@dataclass(frozen=True)
class MatchDecision:
    """Outcome of one authenticate() call"""
    authenticated: bool
    method: AccessMethod
    location: str
    occurred_at: datetime
    identity: Optional[EnrolledIdentity] = None

    @property
    def message(self) -> str:
        if self.authenticated:
            return f"Welcome {self.identity.display_name}!"
        return "Access denied - Authentication failed"

    def to_dict(self) -> Dict:
        if not self.authenticated:
            return {
                'success': False,
                'authenticated': False,
                'message': self.message,
            }
        return {
            'success': True,
            'authenticated': True,
            'employee': {
                'id': self.identity.id,
                'name': self.identity.display_name,
                'department': self.identity.department,
                'role': self.identity.role,
            },
            'accessMethod': self.method.value,
            'accessTime': self.occurred_at.isoformat(),
            'message': self.message,
        }


# =============================================================================
# Matching Strategies
# =============================================================================

def match_face(probe: CredentialProbe, candidates: Sequence[EnrolledIdentity]) -> Optional[EnrolledIdentity]:
    """First candidate whose stored face template shares the probe's prefix."""
    if not probe.face_template:
        return None
    prefix = probe.face_template[:FACE_PREFIX_LENGTH]
    for identity in candidates:
        stored = identity.face_template
        if stored and len(stored) > FACE_PREFIX_LENGTH and stored[:FACE_PREFIX_LENGTH] == prefix:
            return identity
    return None


def match_card(probe: CredentialProbe, candidates: Sequence[EnrolledIdentity]) -> Optional[EnrolledIdentity]:
    """First candidate holding exactly the probe's card id."""
    if not probe.card_id:
        return None
    for identity in candidates:
        if identity.card_id == probe.card_id:
            return identity
    return None


def match_fingerprint(probe: CredentialProbe, candidates: Sequence[EnrolledIdentity]) -> Optional[EnrolledIdentity]:
    """First candidate whose stored fingerprint template shares the probe's prefix."""
    if not probe.fingerprint_template:
        return None
    prefix = probe.fingerprint_template[:FINGERPRINT_PREFIX_LENGTH]
    for identity in candidates:
        stored = identity.fingerprint_template
        if stored and len(stored) > FINGERPRINT_PREFIX_LENGTH and stored[:FINGERPRINT_PREFIX_LENGTH] == prefix:
            return identity
    return None


Strategy = Callable[[CredentialProbe, Sequence[EnrolledIdentity]], Optional[EnrolledIdentity]]

STRATEGIES: List[Tuple[AccessMethod, Strategy]] = [
    (AccessMethod.FACE_MATCH, match_face),
    (AccessMethod.CARD_MATCH, match_card),
    (AccessMethod.FINGERPRINT_MATCH, match_fingerprint),
]


def find_match(
    probe: CredentialProbe,
    candidates: Sequence[EnrolledIdentity],
) -> Tuple[Optional[EnrolledIdentity], AccessMethod]:
    """
    Run the strategies in priority order.

    Returns:
        (identity, method) for the winning strategy, or
        (None, probe.requested_method()) when nothing matched
    """
    for method, strategy in STRATEGIES:
        identity = strategy(probe, candidates)
        if identity is not None:
            return identity, method
    return None, probe.requested_method()


# =============================================================================
# Credential Matcher
# =============================================================================

class CredentialMatcher:
    """
    Authenticates probes against the directory.

    Side effects per call:
        - Success: last_access_at updated (best effort), SUCCESS attempt logged
        - Denied:  DENIED attempt logged with no identity

    Log appends run in the background and never affect the decision. The
    only error that reaches the caller is StoreUnavailableError raised while
    loading candidates, before anything is decided or logged.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        access_log: AccessLogStore,
        background: BackgroundTaskRunner,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.directory = directory
        self.access_log = access_log
        self.background = background
        self.clock = clock

    async def authenticate(self, probe: CredentialProbe, location: Optional[str] = None) -> MatchDecision:
        """
        Authenticate a probe.

        Args:
            probe: Presented credential material
            location: Door / reader name (default "Main Entrance")

        Returns:
            MatchDecision

        Raises:
            ValidationFailure: location is too long
            StoreUnavailableError: the directory could not be read
        """
        location = self._normalize_location(location)

        # Fresh candidate set per call; raises StoreUnavailableError
        candidates = await self.directory.list_candidates()

        identity, method = find_match(probe, candidates)
        now = self.clock()

        if identity is None:
            logger.info(f"❌ ACCESS DENIED via {method.value} at {location}")
            self._log_attempt(AccessAttempt(
                identity_id=None,
                display_name_snapshot=UNKNOWN_DISPLAY_NAME,
                location=location,
                method=method,
                outcome=AccessOutcome.DENIED,
                occurred_at=now,
            ))
            return MatchDecision(authenticated=False, method=method, location=location, occurred_at=now)

        await self._touch_last_access(identity, now)
        self._log_attempt(AccessAttempt(
            identity_id=identity.id,
            display_name_snapshot=identity.display_name,
            location=location,
            method=method,
            outcome=AccessOutcome.SUCCESS,
            occurred_at=now,
        ))
        logger.info(f"✅ ACCESS GRANTED: {identity.display_name} via {method.value} at {location}")

        return MatchDecision(
            authenticated=True,
            method=method,
            location=location,
            occurred_at=now,
            identity=identity,
        )

    @staticmethod
    def _normalize_location(location: Optional[str]) -> str:
        if location is None or not location.strip():
            return DEFAULT_LOCATION
        location = location.strip()
        if len(location) > MAX_LOCATION_LENGTH:
            raise ValidationFailure("location", f"must be at most {MAX_LOCATION_LENGTH} characters")
        return location

    async def _touch_last_access(self, identity: EnrolledIdentity, now: datetime):
        try:
            await self.directory.touch_last_access(identity.id, now)
        except Exception as e:
            # Decision stands even if the timestamp cannot be written
            self.background.diagnostics.record("last access update", e)

    def _log_attempt(self, attempt: AccessAttempt):
        self.background.submit("access log append", self.access_log.append(attempt))
