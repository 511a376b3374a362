import pytest

from ethicsgate.errors import NotFound, PermissionDenied, ValidationError
from ethicsgate.models import Role
from ethicsgate.organizations import OrganizationManager
from ethicsgate.validators import slugify


@pytest.fixture
def orgs(store):
    return OrganizationManager(store)


def test_register_makes_first_member_admin(orgs):
    organization, admin = orgs.register("Coastal Health Lab", "coastal-health", "Lead@Coastal.org", "Mara Lind")
    assert organization.slug == "coastal-health"
    assert admin.organization_id == organization.id
    assert admin.role == Role.ADMIN
    assert admin.email == "lead@coastal.org"


@pytest.mark.parametrize(
    "name,slug,email,full_name,field",
    [
        ("X", "valid-slug", "a@b.org", "Full Name", "name"),
        ("Valid Org", "ab", "a@b.org", "Full Name", "slug"),
        ("Valid Org", "Bad_Slug", "a@b.org", "Full Name", "slug"),
        ("Valid Org", "valid-slug", "not-an-email", "Full Name", "email"),
        ("Valid Org", "valid-slug", "a@b.org", "F", "full_name"),
    ],
)
def test_register_validation(orgs, name, slug, email, full_name, field):
    with pytest.raises(ValidationError) as exc:
        orgs.register(name, slug, email, full_name)
    assert exc.value.field == field


def test_register_rejects_taken_slug(orgs, world):
    with pytest.raises(ValidationError) as exc:
        orgs.register("Another Harbor", world.o1.slug, "x@y.org", "Some One")
    assert exc.value.field == "slug"


def test_slugify():
    assert slugify("Harbor University: IRB #2") == "harbor-university-irb-2"
    assert len(slugify("a" * 80)) == 50


def test_invite_requires_admin_and_unique_email(orgs, world):
    user = orgs.invite(world.admin, "new.reviewer@harbor.org", "New Reviewer", "reviewer")
    assert user.organization_id == world.o1.id
    assert user.role == Role.REVIEWER
    with pytest.raises(PermissionDenied):
        orgs.invite(world.author, "someone@harbor.org", "Some One")
    with pytest.raises(ValidationError):
        orgs.invite(world.admin, world.r1.email, "Duplicate")
    with pytest.raises(ValidationError):
        orgs.invite(world.admin, "x@harbor.org", "Some One", "superuser")


def test_same_email_allowed_in_other_org(orgs, world):
    user = orgs.invite(world.outsider_admin, world.r1.email, "Same Address")
    assert user.organization_id == world.o2.id


def test_change_role(orgs, world):
    promoted = orgs.change_role(world.admin, world.r1, "admin")
    assert promoted.role == Role.ADMIN
    assert world.r1.role == Role.REVIEWER
    with pytest.raises(PermissionDenied):
        orgs.change_role(world.author, world.r1, "admin")
    with pytest.raises(NotFound):
        orgs.change_role(world.outsider_admin, world.r1, "researcher")


def test_last_admin_cannot_demote_themselves(orgs, world, store):
    with pytest.raises(ValidationError):
        orgs.change_role(world.admin, world.admin, "researcher")
    store.update_user(orgs.change_role(world.admin, world.r2, "admin"))
    assert orgs.change_role(world.admin, world.admin, "researcher").role == Role.RESEARCHER


def test_update_organization_merges_settings_and_keeps_slug(orgs, world):
    updated = orgs.update_organization(world.admin, world.o1, name="Harbor U", settings={"review_days": 14})
    assert updated.name == "Harbor U"
    assert updated.slug == world.o1.slug
    assert updated.settings == {"review_days": 14}
    again = orgs.update_organization(world.admin, updated, settings={"theme": "dark"})
    assert again.settings == {"review_days": 14, "theme": "dark"}
    with pytest.raises(PermissionDenied):
        orgs.update_organization(world.r1, world.o1, name="Hijack")
    with pytest.raises(NotFound):
        orgs.update_organization(world.outsider_admin, world.o1, name="Hijack")
