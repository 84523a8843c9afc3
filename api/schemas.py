"""
Pydantic Schemas for API Request/Response Models

Field names follow the JSON wire format used by the dashboard clients.
"""
from pydantic import BaseModel, Field, model_validator
from typing import List, Dict, Optional

from config import MAX_LOCATION_LENGTH


# ==================== Authentication ====================

class AuthenticateRequest(BaseModel):
    """Credential probe presented at a door. Every credential is optional."""
    faceTemplate: Optional[str] = Field(None, description="Opaque face template")
    fingerprintTemplate: Optional[str] = Field(None, description="Opaque fingerprint template")
    cardId: Optional[str] = Field(None, max_length=50, description="Access card identifier")
    location: Optional[str] = Field(
        None,
        max_length=MAX_LOCATION_LENGTH,
        description="Door or reader name (default: Main Entrance)",
    )


class EmployeeSummary(BaseModel):
    """Identity returned on a granted attempt"""
    id: int
    name: str
    department: str
    role: Optional[str] = None


class AuthenticateResponse(BaseModel):
    """Response for the authenticate endpoint (granted)"""
    success: bool
    authenticated: bool
    employee: Optional[EmployeeSummary] = None
    accessMethod: Optional[str] = None
    accessTime: Optional[str] = None
    message: str


class RegisterBiometricRequest(BaseModel):
    """Enroll credentials for an existing employee"""
    employeeId: int = Field(..., gt=0, description="Employee identifier")
    faceTemplate: Optional[str] = None
    fingerprintTemplate: Optional[str] = None
    cardId: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def require_one_credential(self):
        if not (self.faceTemplate or self.fingerprintTemplate or self.cardId):
            raise ValueError("At least one biometric template or card ID is required")
        return self


class RegisterBiometricResponse(BaseModel):
    success: bool
    message: str
    employeeId: int


# ==================== Alerts ====================

class DispatchAlertRequest(BaseModel):
    """Generic alert fan-out request"""
    alertCategory: str = Field(..., min_length=1, max_length=50, description="e.g. FIRE EMERGENCY")
    message: str = Field(..., min_length=1, max_length=1000, description="Alert text")
    location: Optional[str] = Field(
        None,
        max_length=MAX_LOCATION_LENGTH,
        description="Where it happened; appended to the message",
    )


class AccessAlertRequest(BaseModel):
    """Unauthorized access alert"""
    employeeName: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=MAX_LOCATION_LENGTH)


class ChannelOutcome(BaseModel):
    """Per-channel delivery detail"""
    channel: str
    success: bool
    method: str
    error: Optional[str] = None


class AlertDispatchResponse(BaseModel):
    """Response for every alert endpoint"""
    success: bool
    message: Optional[str] = None
    successCount: int
    totalPlatforms: int
    platforms: Dict[str, bool]
    channels: List[ChannelOutcome]
    timestamp: str


# ==================== Access Logs ====================

class AccessLogRecord(BaseModel):
    """Access attempt joined with the identity's name and department"""
    id: int
    identity_id: Optional[int] = None
    display_name_snapshot: str
    identity_name: Optional[str] = None
    department: Optional[str] = None
    location: str
    method: str
    outcome: str
    occurred_at: str


class AccessLogsResponse(BaseModel):
    success: bool
    count: int
    logs: List[AccessLogRecord]


# ==================== Health Check ====================

class HealthResponse(BaseModel):
    """API health check response"""
    status: str
    version: str
    database_connected: bool
    employee_count: Optional[int] = None
    live_clients: int
    background_failures: int
    timestamp: str
