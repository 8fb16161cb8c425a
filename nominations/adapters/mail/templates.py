"""
Provides application-independent templates for use in email.

Bodies live in nominations/templates/<name>.txt; subjects are kept here
so adapters can render both without knowing the file layout.
"""

from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateNotFound

from nominations.domain.exceptions import DeliveryFailed

TEMPLATES = Environment(
    loader=PackageLoader("nominations", "templates"),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)

SUBJECTS = {
    "verify-email": "Please confirm your email address",
    "admin-approval": "A new user needs approval",
}


def render(template: str, context: dict[str, Any]) -> tuple[str, str]:
    """
    Render a named email template.

    Returns:
        (subject, body)

    Raises:
        DeliveryFailed: No such template
    """
    try:
        body = TEMPLATES.get_template(f"{template}.txt").render(**context)
    except TemplateNotFound as e:
        raise DeliveryFailed(f"Unknown email template: {template}") from e
    return SUBJECTS.get(template, template), body
