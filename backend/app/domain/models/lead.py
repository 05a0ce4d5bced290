"""
Lead Domain Models
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional


class Lead(BaseModel):
    """CRM lead attached to an appointment"""
    model_config = ConfigDict(extra="ignore")

    id: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None  # Dialling code, e.g. "91" or "+91"
    assigned_to: Optional[str] = None
    previous_assigned_to: Optional[str] = None


class CloserProfile(BaseModel):
    """Sales closer (a row in profiles)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
