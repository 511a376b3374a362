import re
from typing import Any, Dict, Mapping

from . import config
from .errors import ValidationError


def _length_between(value: Any, field: str, low: int, high: int, label: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string", field=field)
    if len(value) < low:
        raise ValidationError(f"{label} must be at least {low} characters", field=field)
    if len(value) > high:
        raise ValidationError(f"{label} must be at most {high} characters", field=field)
    return value


def validate_title(title: Any) -> str:
    return _length_between(
        title, "title", config.TITLE_MIN_LENGTH, config.TITLE_MAX_LENGTH, "Title"
    )


def validate_content(content: Any) -> Dict[str, Any]:
    # Rich-text documents are opaque; all we require is a mapping
    if not isinstance(content, Mapping):
        raise ValidationError("Content must be a structured document (mapping)", field="content")
    return dict(content)


def validate_organization_name(name: Any) -> str:
    return _length_between(
        name, "name", config.NAME_MIN_LENGTH, config.NAME_MAX_LENGTH, "Organization name"
    )


def validate_full_name(full_name: Any) -> str:
    return _length_between(
        full_name, "full_name", config.NAME_MIN_LENGTH, config.NAME_MAX_LENGTH, "Full name"
    )


def validate_slug(slug: Any) -> str:
    _length_between(slug, "slug", config.SLUG_MIN_LENGTH, config.SLUG_MAX_LENGTH, "Slug")
    if not re.match(config.SLUG_PATTERN, slug):
        raise ValidationError(
            "Slug can only contain lowercase letters, numbers, and hyphens", field="slug"
        )
    return slug


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not re.match(config.EMAIL_PATTERN, email):
        raise ValidationError("Please enter a valid email address", field="email")
    return email.lower()


def validate_non_empty(text: Any, field: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return text


def slugify(name: str) -> str:
    """Derive a URL-safe slug from an organization name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[: config.SLUG_MAX_LENGTH].rstrip("-")
