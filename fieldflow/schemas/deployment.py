from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fieldflow.models.customer import CustomerStatus
from fieldflow.models.deployment import TaskStatus, TechnicianStatus


class AuditLogCreate(BaseModel):
    actor_id: str | None = Field(default=None, max_length=120)
    action_type: str = Field(min_length=1, max_length=80)
    description: str | None = None


class AuditLogRead(AuditLogCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime


class DeactivationRequest(BaseModel):
    reason: str | None = None


class DeactivationResult(BaseModel):
    customer_id: UUID
    status: CustomerStatus
    reclaimed_assets: int


class TechnicianCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    username: str = Field(min_length=1, max_length=80)
    contact: str | None = Field(default=None, max_length=120)
    region: str | None = Field(default=None, max_length=120)
    status: TechnicianStatus = TechnicianStatus.available


class TechnicianUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    contact: str | None = Field(default=None, max_length=120)
    region: str | None = Field(default=None, max_length=120)
    status: TechnicianStatus | None = None


class TechnicianRead(TechnicianCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class DeploymentTaskCreate(BaseModel):
    customer_id: UUID
    technician_id: UUID | None = None
    scheduled_date: date | None = None
    notes: str | None = None


class DeploymentTaskRead(DeploymentTaskCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: TaskStatus
    created_at: datetime
    updated_at: datetime


class InstallationComplete(BaseModel):
    notes: str | None = None
