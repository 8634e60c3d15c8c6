from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    LAB_TECH = "lab_tech"
    PHARMACIST = "pharmacist"
    HOSPITAL_ADMIN = "hospital_admin"
    REGION_ADMIN = "region_admin"
    SUPER_ADMIN = "super_admin"
    MOH_ADMIN = "moh_admin"


class ScopeKind(str, Enum):
    HOSPITAL = "hospital"
    PHARMACY = "pharmacy"
    REGION = "region"


# Which organizational boundary each role is confined to; absent means global
ROLE_SCOPES = {
    Role.DOCTOR: ScopeKind.HOSPITAL,
    Role.LAB_TECH: ScopeKind.HOSPITAL,
    Role.HOSPITAL_ADMIN: ScopeKind.HOSPITAL,
    Role.PHARMACIST: ScopeKind.PHARMACY,
    Role.REGION_ADMIN: ScopeKind.REGION,
}

SCOPE_FIELDS = {
    ScopeKind.HOSPITAL: "hospital_id",
    ScopeKind.PHARMACY: "pharmacy_id",
    ScopeKind.REGION: "region",
}


@dataclass(frozen=True)
class Principal:
    """Identity resolved for one request"""

    id: int
    role: Role
    is_active: bool
    hospital_id: Optional[int] = None
    pharmacy_id: Optional[int] = None
    region: Optional[str] = None

    @property
    def scope_kind(self) -> Optional[ScopeKind]:
        return ROLE_SCOPES.get(self.role)

    @property
    def tenant_scope(self) -> Optional[dict]:
        kind = self.scope_kind
        if kind is ScopeKind.HOSPITAL:
            return {"hospitalId": self.hospital_id}
        if kind is ScopeKind.PHARMACY:
            return {"pharmacyId": self.pharmacy_id}
        if kind is ScopeKind.REGION:
            return {"region": self.region}
        return None

    def token_claims(self) -> dict:
        return {
            "sub": self.id,
            "role": self.role.value,
            "hospital_id": self.hospital_id,
            "pharmacy_id": self.pharmacy_id,
            "region": self.region,
        }


class LoginRequest(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6)


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class RegisterPatientRequest(BaseModel):
    firstName: str
    lastName: str
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str
    password: str = Field(min_length=8)
    dateOfBirth: str
    gender: Literal["male", "female", "other"]
    region: str
    city: str
    bloodType: Optional[str] = None


class StaffCreate(BaseModel):
    firstName: str
    lastName: str
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str
    password: str = Field(min_length=8)
    role: Role
    hospitalId: Optional[int] = None
    pharmacyId: Optional[int] = None
    region: Optional[str] = None
    licenseNumber: Optional[str] = None
    specialization: Optional[str] = None


class StatusUpdate(BaseModel):
    isActive: bool


class HospitalCreate(BaseModel):
    name: str
    code: str
    region: str
    address: Optional[str] = None


class PharmacyCreate(BaseModel):
    name: str
    code: str
    region: str
    address: Optional[str] = None


class VitalsSubmission(BaseModel):
    heartRate: Optional[float] = None
    bloodPressure: Optional[str] = None
    temperature: Optional[float] = None
    bloodSugar: Optional[float] = None
    oxygenSaturation: Optional[float] = None
    weight: Optional[float] = None
    notes: Optional[str] = None
    source: Literal["manual", "device"] = "manual"
    doctorId: Optional[int] = None


