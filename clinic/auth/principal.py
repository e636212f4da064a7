import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def can_act_as(self, role: "Role") -> bool:
        return role in _CAPABILITIES[self]


_CAPABILITIES = {
    Role.ADMIN: frozenset({Role.ADMIN, Role.DOCTOR}),
    Role.DOCTOR: frozenset({Role.DOCTOR}),
    Role.PATIENT: frozenset({Role.PATIENT}),
}


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a credential for the duration of one request."""

    subject: str
    role: Role
    account_id: int

    def can_act_as(self, role: Role) -> bool:
        return self.role.can_act_as(role)

    def owns(self, patient_id: int | None) -> bool:
        return self.role is Role.PATIENT and patient_id is not None and self.account_id == patient_id
