"""Tenant sign-up and membership administration."""

from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .access import AccessEvaluator
from .errors import NotFound, PermissionDenied, ValidationError
from .models import Organization, Role, User, parse_role
from .storage import Store
from .utils import utc_now
from .validators import (
    validate_email,
    validate_full_name,
    validate_organization_name,
    validate_slug,
)


class OrganizationManager:
    def __init__(
        self,
        directory: Store,
        evaluator: Optional[AccessEvaluator] = None,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.directory = directory
        self.evaluator = evaluator or AccessEvaluator()
        self.clock = clock

    def register(
        self, name: str, slug: str, email: str, full_name: str
    ) -> Tuple[Organization, User]:
        """Create a tenant together with its first member, who becomes admin."""
        name = validate_organization_name(name)
        slug = validate_slug(slug)
        email = validate_email(email)
        full_name = validate_full_name(full_name)
        if self.directory.find_organization_by_slug(slug) is not None:
            raise ValidationError("This organization URL is already taken", field="slug")

        now = self.clock()
        organization = Organization(name=name, slug=slug, created_at=now)
        admin = User(
            organization_id=organization.id,
            email=email,
            full_name=full_name,
            role=Role.ADMIN,
            created_at=now,
        )
        return organization, admin

    def invite(
        self, actor: User, email: str, full_name: str, role: Union[Role, str] = Role.RESEARCHER
    ) -> User:
        self._require_admin(actor, actor.organization_id)
        email = validate_email(email)
        full_name = validate_full_name(full_name)
        if not isinstance(role, Role):
            role = parse_role(role)
        for member in self.directory.list_users(actor.organization_id):
            if member.email == email:
                raise ValidationError(f"{email} is already a member", field="email")
        return User(
            organization_id=actor.organization_id,
            email=email,
            full_name=full_name,
            role=role,
            created_at=self.clock(),
        )

    def change_role(self, actor: User, target: User, role: Union[Role, str]) -> User:
        if not isinstance(role, Role):
            role = parse_role(role)
        if target.organization_id != actor.organization_id:
            raise NotFound(f"user {target.id} not found")
        self._require_admin(actor, target.organization_id)
        if self.evaluator.is_admin(target) and role != Role.ADMIN:
            admins = [
                u for u in self.directory.list_users(target.organization_id)
                if self.evaluator.is_admin(u)
            ]
            if len(admins) <= 1:
                raise ValidationError(
                    "The organization must keep at least one admin", field="role"
                )
        return replace(target, role=role)

    def update_organization(
        self,
        actor: User,
        organization: Organization,
        name: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Organization:
        # slug is immutable after creation
        if organization.id != actor.organization_id:
            raise NotFound(f"organization {organization.id} not found")
        self._require_admin(actor, organization.id)
        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = validate_organization_name(name)
        if settings is not None:
            if not isinstance(settings, dict):
                raise ValidationError("Settings must be a mapping", field="settings")
            merged = dict(organization.settings)
            merged.update(settings)
            changes["settings"] = merged
        return replace(organization, **changes)

    def _require_admin(self, actor: User, organization_id: str) -> None:
        if not self.evaluator.can_administer(actor, organization_id):
            raise PermissionDenied(f"User {actor.id} is not an admin of {organization_id}")
