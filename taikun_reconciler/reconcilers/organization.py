"""Organizations, users and project membership."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from taikun_reconciler import convert
from taikun_reconciler.client import Page
from taikun_reconciler.errors import NotFound
from taikun_reconciler.ids import format_composite_id, parse_composite_id, parse_id
from taikun_reconciler.models.base import audit_fields, str_id
from taikun_reconciler.models.organization import Organization, ProjectUserAttachment, User
from taikun_reconciler.reconcilers.base import Reconciler


class OrganizationReconciler(Reconciler[Organization]):
    """The lock flag travels in the update body rather than a lock manager."""

    kind = "organization"
    model = Organization
    scoped = False

    def _list(self, offset: int, id: Optional[int], organization_id: Optional[int] = None) -> Page:
        return self.client.list_organizations(offset, id=organization_id if id is None else id)

    def _observe(self, raw: Dict[str, Any]) -> Organization:
        return Organization.observed({
            "id": str_id(raw.get("id")),
            "name": raw.get("name"),
            "full_name": raw.get("fullName"),
            "discount_rate": raw.get("discountRate"),
            "address": raw.get("address") or None,
            "billing_email": raw.get("billingEmail") or None,
            "city": raw.get("city") or None,
            "country": raw.get("country") or None,
            "email": raw.get("email") or None,
            "phone": raw.get("phone") or None,
            "vat_number": raw.get("vatNumber") or None,
            "managers_can_change_subscription": bool(raw.get("isEligibleUpdateSubscription")),
            "lock": bool(raw.get("isLocked")),
            "created_at": raw.get("createdAt"),
            "is_read_only": raw.get("isReadOnly"),
            "partner_id": str_id(raw.get("partnerId")),
            "partner_name": raw.get("partnerName"),
            "projects": raw.get("projects"),
            "servers": raw.get("servers"),
            **audit_fields(raw),
        })

    def changed_fields(self, desired: Organization, observed: Organization) -> Set[str]:
        changed = super().changed_fields(desired, observed)
        if bool(desired.lock) != bool(observed.lock):
            changed.add("lock")
        return changed

    def _body(self, desired: Organization) -> Dict[str, Any]:
        return {
            "name": desired.name,
            "fullName": desired.full_name,
            "discountRate": desired.discount_rate,
            "address": desired.address or "",
            "billingEmail": desired.billing_email or "",
            "city": desired.city or "",
            "country": desired.country or "",
            "email": desired.email or "",
            "phone": desired.phone or "",
            "vatNumber": desired.vat_number or "",
            "isEligibleUpdateSubscription": desired.managers_can_change_subscription,
        }

    def _create(self, desired: Organization) -> str:
        new_id = self.client.create_organization(self._body(desired))
        if desired.lock:
            self.client.update_organization({"id": parse_id(new_id), "isLocked": True, **self._body(desired)})
        return new_id

    def _update(self, id: str, desired: Organization, observed: Organization, changed: Set[str]) -> None:
        self.client.update_organization({"id": parse_id(id), "isLocked": desired.lock, **self._body(desired)})

    def _delete(self, id: str) -> None:
        self.client.delete_organization(parse_id(id))


class UserReconciler(Reconciler[User]):
    """Users are keyed by an opaque string id."""

    kind = "user"
    model = User

    def _parse_id(self, id: str) -> str:
        return id

    def _list(self, offset: int, id: Optional[str], organization_id: Optional[int] = None) -> Page:
        return self.client.list_users(offset, id=id, organization_id=organization_id)

    def _observe(self, raw: Dict[str, Any]) -> User:
        return User.observed({
            "id": raw.get("id"),
            "user_name": raw.get("username"),
            "email": raw.get("email"),
            "display_name": raw.get("displayName") or None,
            "role": convert.user_role_name(raw.get("role")),
            "user_disabled": bool(raw.get("isLocked")),
            "approved_by_partner": bool(raw.get("isApprovedByPartner")),
            "email_confirmed": raw.get("isEmailConfirmed"),
            "email_notification_enabled": raw.get("isEmailNotificationEnabled"),
            "is_csm": raw.get("isCsm"),
            "is_owner": raw.get("owner"),
            "organization_id": str_id(raw.get("organizationId")),
            "organization_name": raw.get("organizationName"),
            **audit_fields(raw),
        })

    def _update_body(self, id: str, desired: User) -> Dict[str, Any]:
        return {
            "id": id,
            "username": desired.user_name,
            "displayName": desired.display_name or "",
            "email": desired.email,
            "role": convert.user_role(desired.role),
            "disable": desired.user_disabled,
            "isApprovedByPartner": desired.approved_by_partner,
        }

    def _create(self, desired: User) -> str:
        new_id = self.client.create_user({
            "username": desired.user_name,
            "displayName": desired.display_name or "",
            "email": desired.email,
            "role": convert.user_role(desired.role),
            "organizationId": int(desired.organization_id),
        })
        # Disabled and partner-approval flags are only accepted by the update call.
        self.client.update_user(self._update_body(new_id, desired))
        return new_id

    def _update(self, id: str, desired: User, observed: User, changed: Set[str]) -> None:
        self.client.update_user(self._update_body(id, desired))

    def _delete(self, id: str) -> None:
        self.client.delete_user(id)


class ProjectUserAttachmentReconciler(Reconciler[ProjectUserAttachment]):
    """A user bound to a project; addressed as ``<project>/<user>``."""

    kind = "project_user_attachment"
    model = ProjectUserAttachment
    scoped = False

    def _user(self, user_id: str) -> Dict[str, Any]:
        users = self.session.list_all(lambda offset: self.client.list_users(offset, id=user_id))
        if len(users) != 1:
            raise NotFound(f"user {user_id} not found")
        return users[0]

    def _fetch(self, id: str) -> Dict[str, Any]:
        project_id, user_id = parse_composite_id(id, child_is_name=True)
        user = self._user(user_id)
        for bound in user.get("boundProjects") or []:
            if bound.get("projectId") == project_id:
                return {**bound, "userId": user.get("id"), "userName": user.get("username")}
        raise NotFound(f"user {user_id} is not bound to project {project_id}")

    def _list_rows(self, organization_id: Optional[int]) -> List[Dict[str, Any]]:
        users = self.session.list_all(lambda offset: self.client.list_users(offset, organization_id=organization_id))
        return [
            {**bound, "userId": user.get("id"), "userName": user.get("username")}
            for user in users
            for bound in user.get("boundProjects") or []
        ]

    def _observe(self, raw: Dict[str, Any]) -> ProjectUserAttachment:
        return ProjectUserAttachment.observed({
            "id": format_composite_id(raw.get("projectId"), raw.get("userId")),
            "project_id": str_id(raw.get("projectId")),
            "project_name": raw.get("projectName"),
            "user_id": raw.get("userId"),
            "user_name": raw.get("userName"),
        })

    def _create(self, desired: ProjectUserAttachment) -> str:
        project_id = parse_id(desired.project_id, "project_id")
        self.client.bind_project_users(project_id, [{"isBound": True, "userId": desired.user_id}])
        return format_composite_id(project_id, desired.user_id)

    def _delete(self, id: str) -> None:
        project_id, user_id = parse_composite_id(id, child_is_name=True)
        self._user(user_id)
        projects = self.session.list_all(lambda offset: self.client.list_projects(offset, id=project_id))
        if len(projects) != 1:
            raise NotFound(f"project {project_id} not found")
        self.client.bind_project_users(project_id, [{"isBound": False, "userId": user_id}])
