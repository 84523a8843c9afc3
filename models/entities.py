"""
Access Control Domain Entities

Plain dataclasses shared by the stores, the credential matcher and the
alert dispatcher. API-facing shapes live in api/schemas.py.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp in the system."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class IdentityStatus(str, Enum):
    """Roster status of a person"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    ON_LEAVE = "On Leave"


class AccessMethod(str, Enum):
    """How an access attempt was decided"""
    FACE_MATCH = "Face Recognition"
    CARD_MATCH = "Card"
    FINGERPRINT_MATCH = "Fingerprint"
    MANUAL = "Manual"
    FIRE_ALERT = "Fire Alert"
    UNKNOWN = "Unknown"


class AccessOutcome(str, Enum):
    """Result of an access attempt"""
    SUCCESS = "SUCCESS"
    DENIED = "DENIED"


@dataclass
class EnrolledIdentity:
    """
    A person in the directory.

    Only identities with status=Active and enrolled=True are considered
    by the credential matcher. Templates are opaque strings.
    """
    id: int
    display_name: str
    department: str
    role: str = ""
    status: IdentityStatus = IdentityStatus.ACTIVE
    enrolled: bool = False
    face_template: Optional[str] = None
    fingerprint_template: Optional[str] = None
    card_id: Optional[str] = None
    last_access_at: Optional[datetime] = None

    @property
    def is_candidate(self) -> bool:
        return self.status == IdentityStatus.ACTIVE and self.enrolled


@dataclass(frozen=True)
class AccessAttempt:
    """
    One immutable access log entry.

    A SUCCESS entry always names an identity; a DENIED entry never does.
    """
    identity_id: Optional[int]
    display_name_snapshot: str
    location: str
    method: AccessMethod
    outcome: AccessOutcome
    occurred_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    def __post_init__(self):
        if self.outcome == AccessOutcome.SUCCESS and self.identity_id is None:
            raise ValueError("A successful access attempt must reference an identity")
        if self.outcome == AccessOutcome.DENIED and self.identity_id is not None:
            raise ValueError("A denied access attempt cannot reference an identity")

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'identity_id': self.identity_id,
            'display_name_snapshot': self.display_name_snapshot,
            'location': self.location,
            'method': self.method.value,
            'outcome': self.outcome.value,
            'occurred_at': self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class AccessLogEntry:
    """Access attempt joined with the identity's current name and department"""
    attempt: AccessAttempt
    identity_name: Optional[str] = None
    department: Optional[str] = None

    def to_dict(self) -> Dict:
        data = self.attempt.to_dict()
        data['identity_name'] = self.identity_name
        data['department'] = self.department
        return data


@dataclass(frozen=True)
class AlertChannelOutcome:
    """Delivery result of one notification channel"""
    channel_name: str
    succeeded: bool
    method_label: str
    error_detail: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'channel': self.channel_name,
            'success': self.succeeded,
            'method': self.method_label,
            'error': self.error_detail,
        }


@dataclass(frozen=True)
class AlertDispatchResult:
    """
    Aggregated result of one alert fan-out.

    successful_channels always equals the number of succeeded outcomes.
    """
    per_channel: Dict[str, AlertChannelOutcome]
    total_channels: int
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def successful_channels(self) -> int:
        return sum(1 for outcome in self.per_channel.values() if outcome.succeeded)

    @property
    def success(self) -> bool:
        return self.successful_channels > 0

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'successCount': self.successful_channels,
            'totalPlatforms': self.total_channels,
            'platforms': {name: outcome.succeeded for name, outcome in self.per_channel.items()},
            'timestamp': self.occurred_at.isoformat(),
        }
