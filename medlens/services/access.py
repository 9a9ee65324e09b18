"""
Role-based access policy.

One rule object per role; every router and service asks the same policy instead of
switching on role strings. Decisions are pure functions of the in-memory objects
handed in: the caller loads the target (and answers 404) before asking.
"""
from dataclasses import dataclass

from medlens.models import Patient, Role, User


@dataclass(frozen=True)
class PatientScope:
    """Listing filter equivalent of can_access_patient. field=None means no restriction."""

    field: str | None = None
    value: int | None = None
    deny_all: bool = False


ALL_PATIENTS = PatientScope()
NO_PATIENTS = PatientScope(deny_all=True)


class RoleRules:
    role: Role

    def can_access_user(self, requester: User, target_user_id: int) -> bool:
        return False

    def can_access_patient(self, requester: User, patient: Patient) -> bool:
        return False

    def patient_scope(self, requester: User) -> PatientScope:
        return NO_PATIENTS

    def visible_user_ids(self, requester: User) -> set[int] | None:
        """None means every user."""
        return set()


class AdminRules(RoleRules):
    role = Role.admin

    def can_access_user(self, requester, target_user_id):
        return True

    def can_access_patient(self, requester, patient):
        return True

    def patient_scope(self, requester):
        return ALL_PATIENTS

    def visible_user_ids(self, requester):
        return None


class SeniorDoctorRules(RoleRules):
    role = Role.senior_doctor

    def can_access_user(self, requester, target_user_id):
        return target_user_id == requester.id or target_user_id in (requester.assigned_consulting_doctors or [])

    def can_access_patient(self, requester, patient):
        # Unconditional for now; scoping to the patients of their consulting
        # doctors is pending product confirmation (see DESIGN.md).
        return True

    def patient_scope(self, requester):
        return ALL_PATIENTS

    def visible_user_ids(self, requester):
        return {requester.id, *(requester.assigned_consulting_doctors or [])}


class ConsultingDoctorRules(RoleRules):
    role = Role.consulting_doctor

    def can_access_user(self, requester, target_user_id):
        return target_user_id == requester.id

    def can_access_patient(self, requester, patient):
        return patient.assigned_doctor_id is not None and patient.assigned_doctor_id == requester.id

    def patient_scope(self, requester):
        return PatientScope(field="assigned_doctor_id", value=requester.id)

    def visible_user_ids(self, requester):
        return {requester.id}


class FrontDeskCoordinatorRules(RoleRules):
    role = Role.front_desk_coordinator

    def can_access_patient(self, requester, patient):
        return patient.created_by_id is not None and patient.created_by_id == requester.id

    def patient_scope(self, requester):
        return PatientScope(field="created_by_id", value=requester.id)


_RULES: dict[Role, RoleRules] = {
    rules.role: rules
    for rules in (AdminRules(), SeniorDoctorRules(), ConsultingDoctorRules(), FrontDeskCoordinatorRules())
}
_DENY = RoleRules()


def rules_for(user: User) -> RoleRules:
    try:
        return _RULES.get(Role(user.role), _DENY)
    except ValueError:
        return _DENY


class AccessPolicy:
    """Entry point used by routers and services."""

    @staticmethod
    def can_access_user(requester: User, target_user_id: int) -> bool:
        return rules_for(requester).can_access_user(requester, target_user_id)

    @staticmethod
    def can_access_patient(requester: User, patient: Patient) -> bool:
        return rules_for(requester).can_access_patient(requester, patient)

    @staticmethod
    def patient_scope(requester: User) -> PatientScope:
        return rules_for(requester).patient_scope(requester)

    @staticmethod
    def visible_user_ids(requester: User) -> set[int] | None:
        return rules_for(requester).visible_user_ids(requester)


policy = AccessPolicy()
