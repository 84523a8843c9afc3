import pytest

from conftest import FIXED_NOW, make_identity
from models.entities import AccessMethod, AccessOutcome, IdentityStatus
from services.credential_matcher import CredentialProbe, find_match
from services.errors import StoreUnavailableError, ValidationFailure

FACE_A = "A" * 100 + "stored-tail-of-face-a"
FACE_B = "B" * 100 + "stored-tail-of-face-b"
FINGER_A = "F" * 50 + "stored-fingerprint-tail"


class TestFaceStrategy:
    """Tests for the face template prefix comparison"""

    @pytest.mark.asyncio
    async def test_face_prefix_match_ignores_remaining_characters(self, matcher, directory):
        directory.identities = [make_identity(1, face_template=FACE_A)]

        probe = CredentialProbe(face_template="A" * 100 + "completely different tail")
        decision = await matcher.authenticate(probe)

        assert decision.authenticated is True
        assert decision.identity.id == 1
        assert decision.method == AccessMethod.FACE_MATCH

    @pytest.mark.asyncio
    async def test_stored_face_template_must_exceed_prefix_length(self, matcher, directory):
        directory.identities = [make_identity(1, face_template="A" * 100)]

        decision = await matcher.authenticate(CredentialProbe(face_template="A" * 150))

        assert decision.authenticated is False
        assert decision.method == AccessMethod.FACE_MATCH

    @pytest.mark.asyncio
    async def test_first_candidate_in_store_order_wins(self, matcher, directory):
        directory.identities = [
            make_identity(7, face_template="A" * 100 + "x"),
            make_identity(3, face_template="A" * 100 + "y"),
        ]

        decision = await matcher.authenticate(CredentialProbe(face_template=FACE_A))

        assert decision.identity.id == 7

    @pytest.mark.asyncio
    async def test_face_wins_over_card(self, matcher, directory):
        directory.identities = [
            make_identity(1, face_template=FACE_A),
            make_identity(2, card_id="CARD-42"),
        ]

        decision = await matcher.authenticate(CredentialProbe(face_template=FACE_A, card_id="CARD-42"))

        assert decision.identity.id == 1
        assert decision.method == AccessMethod.FACE_MATCH


class TestCardAndFingerprint:
    """Tests for card and fingerprint strategies"""

    @pytest.mark.asyncio
    async def test_card_used_when_face_does_not_match(self, matcher, directory):
        directory.identities = [
            make_identity(1, face_template=FACE_A),
            make_identity(2, card_id="CARD-42"),
        ]

        decision = await matcher.authenticate(CredentialProbe(face_template=FACE_B, card_id="CARD-42"))

        assert decision.identity.id == 2
        assert decision.method == AccessMethod.CARD_MATCH

    @pytest.mark.asyncio
    async def test_card_requires_exact_equality(self, matcher, directory):
        directory.identities = [make_identity(2, card_id="CARD-42")]

        decision = await matcher.authenticate(CredentialProbe(card_id="CARD-4"))

        assert decision.authenticated is False
        assert decision.method == AccessMethod.CARD_MATCH

    @pytest.mark.asyncio
    async def test_fingerprint_prefix_match(self, matcher, directory):
        directory.identities = [make_identity(5, fingerprint_template=FINGER_A)]

        decision = await matcher.authenticate(CredentialProbe(fingerprint_template="F" * 50 + "other"))

        assert decision.identity.id == 5
        assert decision.method == AccessMethod.FINGERPRINT_MATCH

    def test_fingerprint_only_tried_after_card_misses(self):
        candidates = [
            make_identity(1, card_id="CARD-1"),
            make_identity(2, fingerprint_template=FINGER_A),
        ]
        probe = CredentialProbe(card_id="CARD-1", fingerprint_template=FINGER_A)

        identity, method = find_match(probe, candidates)

        assert identity.id == 1
        assert method == AccessMethod.CARD_MATCH


class TestCandidateSet:
    """Only active and enrolled identities are candidates"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"status": IdentityStatus.INACTIVE},
        {"status": IdentityStatus.ON_LEAVE},
        {"enrolled": False},
    ])
    async def test_non_candidates_are_never_matched(self, matcher, directory, overrides):
        directory.identities = [make_identity(1, card_id="CARD-1", **overrides)]

        decision = await matcher.authenticate(CredentialProbe(card_id="CARD-1"))

        assert decision.authenticated is False

    @pytest.mark.asyncio
    async def test_candidates_are_fetched_on_every_call(self, matcher, directory):
        await matcher.authenticate(CredentialProbe(card_id="X"))
        directory.identities = [make_identity(1, card_id="X")]

        decision = await matcher.authenticate(CredentialProbe(card_id="X"))

        assert decision.authenticated is True
        assert directory.list_calls == 2


class TestSideEffects:
    """Tests for last access updates and access logging"""

    @pytest.mark.asyncio
    async def test_success_updates_last_access_and_logs(self, matcher, directory, access_log, background):
        directory.identities = [make_identity(1, card_id="CARD-1", display_name="Nimal Perera")]

        decision = await matcher.authenticate(CredentialProbe(card_id="CARD-1"), location="Warehouse Gate")
        await background.drain()

        assert directory.touched == {1: FIXED_NOW}
        assert len(access_log.attempts) == 1
        attempt = access_log.attempts[0]
        assert attempt.outcome == AccessOutcome.SUCCESS
        assert attempt.identity_id == 1
        assert attempt.display_name_snapshot == "Nimal Perera"
        assert attempt.location == "Warehouse Gate"
        assert attempt.method == AccessMethod.CARD_MATCH
        assert decision.occurred_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_denied_logs_one_attempt_without_identity(self, matcher, directory, access_log, background):
        directory.identities = [make_identity(1, card_id="CARD-1")]

        decision = await matcher.authenticate(CredentialProbe(face_template=FACE_B, card_id="NOPE"))
        await background.drain()

        assert decision.authenticated is False
        assert directory.touched == {}
        assert directory.identities[0].last_access_at is None
        assert len(access_log.attempts) == 1
        attempt = access_log.attempts[0]
        assert attempt.outcome == AccessOutcome.DENIED
        assert attempt.identity_id is None
        assert attempt.display_name_snapshot == "Unknown"
        assert attempt.method == AccessMethod.FACE_MATCH
        assert attempt.location == "Main Entrance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("probe, expected", [
        (CredentialProbe(card_id="NOPE", fingerprint_template="x" * 60), AccessMethod.CARD_MATCH),
        (CredentialProbe(fingerprint_template="x" * 60), AccessMethod.FINGERPRINT_MATCH),
        (CredentialProbe(), AccessMethod.UNKNOWN),
    ])
    async def test_denied_method_label_priority(self, matcher, access_log, background, probe, expected):
        decision = await matcher.authenticate(probe)
        await background.drain()

        assert decision.method == expected
        assert access_log.attempts[0].method == expected

    @pytest.mark.asyncio
    async def test_log_failure_is_swallowed(self, matcher, directory, access_log, background, diagnostics):
        directory.identities = [make_identity(1, card_id="CARD-1")]
        access_log.fails = True

        decision = await matcher.authenticate(CredentialProbe(card_id="CARD-1"))
        await background.drain()

        assert decision.authenticated is True
        assert diagnostics.total_failures == 1
        assert diagnostics.recent()[0].operation == "access log append"

    @pytest.mark.asyncio
    async def test_last_access_failure_does_not_change_decision(self, matcher, directory, diagnostics):
        directory.identities = [make_identity(1, card_id="CARD-1")]
        directory.touch_fails = True

        decision = await matcher.authenticate(CredentialProbe(card_id="CARD-1"))

        assert decision.authenticated is True
        assert diagnostics.total_failures == 1


class TestFailures:
    """Tests for store and validation failures"""

    @pytest.mark.asyncio
    async def test_directory_unavailable_prevents_decision_and_log(self, matcher, directory, access_log, background):
        directory.unavailable = True

        with pytest.raises(StoreUnavailableError):
            await matcher.authenticate(CredentialProbe(card_id="CARD-1"))
        await background.drain()

        assert access_log.attempts == []
        assert background.pending == 0

    @pytest.mark.asyncio
    async def test_location_too_long_is_rejected_before_side_effects(self, matcher, directory, access_log):
        with pytest.raises(ValidationFailure) as exc_info:
            await matcher.authenticate(CredentialProbe(card_id="CARD-1"), location="x" * 101)

        assert exc_info.value.field == "location"
        assert directory.list_calls == 0
        assert access_log.attempts == []


class TestDecisionPayload:
    """Tests for the wire representation of a decision"""

    @pytest.mark.asyncio
    async def test_success_payload(self, matcher, directory):
        directory.identities = [make_identity(1, card_id="CARD-1", display_name="Nimal", role="Supervisor")]

        payload = (await matcher.authenticate(CredentialProbe(card_id="CARD-1"))).to_dict()

        assert payload["authenticated"] is True
        assert payload["employee"] == {"id": 1, "name": "Nimal", "department": "Production", "role": "Supervisor"}
        assert payload["accessMethod"] == "Card"
        assert payload["accessTime"] == FIXED_NOW.isoformat()
        assert payload["message"] == "Welcome Nimal!"

    @pytest.mark.asyncio
    async def test_denied_payload(self, matcher):
        payload = (await matcher.authenticate(CredentialProbe(card_id="CARD-1"))).to_dict()

        assert payload == {
            "success": False,
            "authenticated": False,
            "message": "Access denied - Authentication failed",
        }
