"""
API Routes for the Access Control System

FastAPI endpoints for:
- Credential authentication and enrollment
- Multi-channel alert fan-out (fire, access denied, motion, generic)
- Access log history
- Live fire alarm WebSocket
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
import asyncio

from .schemas import (
    AccessAlertRequest, AccessLogRecord, AccessLogsResponse,
    AlertDispatchResponse, AuthenticateRequest, AuthenticateResponse,
    ChannelOutcome, DispatchAlertRequest, HealthResponse,
    RegisterBiometricRequest, RegisterBiometricResponse,
)

import config
from models.access_log_store import AccessLogStore
from models.directory_store import DirectoryStore
from models.entities import AccessAttempt, AccessMethod, AccessOutcome, AlertDispatchResult, utcnow
from services.background_tasks import BackgroundTaskRunner
from services.credential_matcher import CredentialMatcher, CredentialProbe
from services.errors import StoreUnavailableError
from services.notification_dispatcher import AlertCategory, NotificationDispatcher
from streaming.broadcast_channel import BroadcastChannel

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "2.0.0"
REGISTRATION_LOCATION = "Biometric Registration"


# =============================================================================
# Dependencies (service objects are built once in main.lifespan)
# =============================================================================

def get_matcher(request: Request) -> CredentialMatcher:
    return request.app.state.matcher


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_directory(request: Request) -> DirectoryStore:
    return request.app.state.directory


def get_access_log(request: Request) -> AccessLogStore:
    return request.app.state.access_log


def get_background(request: Request) -> BackgroundTaskRunner:
    return request.app.state.background


def dispatch_response(result: AlertDispatchResult, message: Optional[str] = None) -> AlertDispatchResponse:
    """Convert a dispatch result to the wire format"""
    payload = result.to_dict()
    return AlertDispatchResponse(
        message=message,
        channels=[ChannelOutcome(**outcome.to_dict()) for outcome in result.per_channel.values()],
        **payload,
    )


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint
    """
    state = request.app.state
    connected = await state.database.test_connection()

    employee_count = None
    if connected:
        try:
            employee_count = await state.directory.count_identities()
        except StoreUnavailableError:
            connected = False

    return HealthResponse(
        status="healthy" if connected else "degraded",
        version=API_VERSION,
        database_connected=connected,
        employee_count=employee_count,
        live_clients=state.broadcast.subscriber_count,
        background_failures=state.background.diagnostics.total_failures,
        timestamp=utcnow().isoformat(),
    )


# =============================================================================
# Biometric Authentication
# =============================================================================

@router.post(
    "/biometric/authenticate",
    response_model=AuthenticateResponse,
    responses={401: {"description": "Access denied"}, 503: {"description": "Directory unavailable"}},
)
async def authenticate(req: AuthenticateRequest, matcher: CredentialMatcher = Depends(get_matcher)):
    """
    Authenticate a credential probe (face template, card, fingerprint).

    Returns 200 with the employee on success, 401 when access is denied.
    """
    probe = CredentialProbe(
        face_template=req.faceTemplate,
        fingerprint_template=req.fingerprintTemplate,
        card_id=req.cardId,
    )
    decision = await matcher.authenticate(probe, req.location)

    if not decision.authenticated:
        return JSONResponse(status_code=401, content=decision.to_dict())
    return decision.to_dict()


@router.post("/biometric/register", response_model=RegisterBiometricResponse)
async def register_biometric(
    req: RegisterBiometricRequest,
    directory: DirectoryStore = Depends(get_directory),
    access_log: AccessLogStore = Depends(get_access_log),
    background: BackgroundTaskRunner = Depends(get_background),
):
    """
    Register credentials for an existing employee and mark them enrolled.
    """
    identity = await directory.enroll(
        req.employeeId,
        face_template=req.faceTemplate,
        fingerprint_template=req.fingerprintTemplate,
        card_id=req.cardId,
    )
    if identity is None:
        raise HTTPException(status_code=404, detail="Employee not found")

    background.submit("access log append", access_log.append(AccessAttempt(
        identity_id=identity.id,
        display_name_snapshot=identity.display_name,
        location=REGISTRATION_LOCATION,
        method=AccessMethod.MANUAL,
        outcome=AccessOutcome.SUCCESS,
    )))

    return RegisterBiometricResponse(
        success=True,
        message="Biometric data registered successfully",
        employeeId=identity.id,
    )


# =============================================================================
# Alerts
# =============================================================================

@router.post("/alerts/dispatch", response_model=AlertDispatchResponse)
async def dispatch_alert(req: DispatchAlertRequest, dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """
    Send an alert via all platforms (mail, SMS gateway, chat webhook).

    Always returns the per-platform result, even when every platform failed.
    """
    message = req.message
    if req.location and req.location.strip():
        message = f"{message} Location: {req.location.strip()}"
    result = await dispatcher.dispatch(req.alertCategory, message)
    return dispatch_response(result, message=f"{req.alertCategory} alert processed")


@router.post("/alerts/fire", response_model=AlertDispatchResponse)
async def fire_alert(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """
    Fire emergency: notify every platform and sound the alarm on live clients.
    """
    logger.warning("🔥 FIRE ALERT TRIGGERED!")
    result = await dispatcher.dispatch(AlertCategory.FIRE_EMERGENCY, config.FIRE_ALERT_MESSAGE)
    return dispatch_response(result, message="Fire alert sent via multiple platforms")


@router.post("/alerts/access-denied", response_model=AlertDispatchResponse)
async def access_denied_alert(
    req: Optional[AccessAlertRequest] = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Unauthorized access attempt alert"""
    req = req or AccessAlertRequest()
    message = (
        f"Unauthorized access attempt by {req.employeeName or 'Unknown Person'} "
        f"at {req.location or config.DEFAULT_LOCATION}"
    )
    result = await dispatcher.dispatch(AlertCategory.ACCESS_DENIED, message)
    return dispatch_response(result, message="Access denied alert sent")


@router.post("/alerts/motion", response_model=AlertDispatchResponse)
async def motion_alert(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """Motion detected in a restricted area"""
    result = await dispatcher.dispatch(AlertCategory.MOTION_DETECTED, config.MOTION_ALERT_MESSAGE)
    return dispatch_response(result, message="Motion alert sent")


# =============================================================================
# Access Logs
# =============================================================================

@router.get("/access-logs", response_model=AccessLogsResponse)
async def get_access_logs(
    limit: int = Query(config.ACCESS_LOG_DEFAULT_LIMIT, ge=1, le=config.ACCESS_LOG_MAX_LIMIT,
                       description="Number of most recent attempts"),
    access_log: AccessLogStore = Depends(get_access_log),
):
    """Most recent access attempts, newest first"""
    entries = await access_log.recent(limit)
    return AccessLogsResponse(
        success=True,
        count=len(entries),
        logs=[AccessLogRecord(**entry.to_dict()) for entry in entries],
    )


# =============================================================================
# Live Fire Alarm WebSocket
# =============================================================================

@router.websocket("/ws/alarms")
async def websocket_alarms(websocket: WebSocket):
    """
    WebSocket endpoint for live clients.

    Pushes fire alarm events as they happen (no history). Clients may send
    {"type": "ping"} and receive {"type": "pong"}.
    """
    broadcast: BroadcastChannel = websocket.app.state.broadcast
    # Subscribe before accepting so an alarm raised right after the
    # handshake is not missed.
    subscription = broadcast.subscribe()
    forward_task = None

    async def forward_events():
        while True:
            event = await subscription.get()
            await websocket.send_json(event.to_dict())

    try:
        await websocket.accept()
        forward_task = asyncio.create_task(forward_events())
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and data.get('type') == 'ping':
                await websocket.send_json({'type': 'pong'})
    except WebSocketDisconnect:
        pass
    finally:
        if forward_task is not None:
            forward_task.cancel()
        broadcast.unsubscribe(subscription)
