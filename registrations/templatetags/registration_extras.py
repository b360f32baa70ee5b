# registrations/templatetags/registration_extras.py
from django import template

from registrations.rules import container_id as rule_container_id

register = template.Library()

@register.filter
def container_id(bound_field):
    """
    Usage in templates:
      <div id="{{ field|container_id }}"> ... </div>
    Matches the "container" the client script looks up for a dependent field.
    """
    if bound_field is None:
        return ""
    return rule_container_id(bound_field.name)
