"""
Campaign Domain Models
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum


class CampaignStatus(str, Enum):
    """Campaign status"""
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class CampaignCounter(str, Enum):
    """Monotonic per-campaign counters, incremented atomically in the database"""
    CALLS_COMPLETED = "calls_completed"
    CALLS_CONFIRMED = "calls_confirmed"
    CALLS_RESCHEDULED = "calls_rescheduled"
    CALLS_NOT_INTERESTED = "calls_not_interested"
    CALLS_NO_ANSWER = "calls_no_answer"


class Campaign(BaseModel):
    """Voice campaign dispatched as one call-center batch"""
    model_config = ConfigDict(extra="ignore")

    id: str
    organization_id: Optional[str] = None
    name: Optional[str] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    bolna_agent_id: Optional[str] = None
    bolna_batch_id: Optional[str] = None  # External batch reference
    workshop_id: Optional[str] = None
    workshop_time: Optional[str] = None  # Free-form hint read out by the agent
    whatsapp_template_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_cost: float = 0.0
    calls_completed: int = 0
    calls_confirmed: int = 0
    calls_rescheduled: int = 0
    calls_not_interested: int = 0
    calls_no_answer: int = 0
