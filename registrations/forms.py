# registrations/forms.py
from django import forms

from .rules import (
    ConditionalRequirement,
    evaluate_all,
    is_active,
    to_client,
    validate_rules,
)


YES_NO_CHOICES = [("true", "Yes"), ("false", "No")]


def conditional_requirements(*rules: ConditionalRequirement):
    """
    Class decorator binding ConditionalRequirement rules to a Form class.

    The field names are checked against base_fields right here, so a typo in a
    rule breaks the import of the form module instead of a request.
    """

    def decorate(form_class):
        inherited = tuple(getattr(form_class, "conditional_requirements", ()))
        combined = inherited + tuple(rules)
        validate_rules(form_class.base_fields.keys(), combined)
        form_class.conditional_requirements = combined
        return form_class

    return decorate


class ConditionalRequirementsMixin:
    conditional_requirements = ()

    def clean(self):
        cleaned_data = super().clean()

        for field_name, messages in evaluate_all(cleaned_data, self.conditional_requirements).items():
            for message in messages:
                self.add_error(field_name, message)

        active = self.active_dependents()
        for rule in self.conditional_requirements:
            dependent = rule.dependent_field
            if dependent in active:
                self.fields[dependent].widget.attrs["required"] = True
            elif dependent in cleaned_data:
                # hidden on the page, so the browser would have cleared it
                cleaned_data[dependent] = ""

        return cleaned_data

    def active_dependents(self) -> set:
        record = getattr(self, "cleaned_data", None)
        if record is None:
            return set()
        return {
            rule.dependent_field
            for rule in self.conditional_requirements
            if is_active(record, rule)
        }

    def client_rules(self) -> list:
        return [to_client(rule) for rule in self.conditional_requirements]


def yes_no_field(label: str) -> forms.TypedChoiceField:
    # Radio yes/no: "" and "false" both clean to False, like an unchecked toggle.
    return forms.TypedChoiceField(
        label=label,
        choices=YES_NO_CHOICES,
        coerce=lambda value: value == "true",
        empty_value=False,
        initial="false",
        required=False,
        widget=forms.RadioSelect,
    )


def details_field(label: str) -> forms.CharField:
    return forms.CharField(
        label=label,
        required=False,
        widget=forms.Textarea(attrs={"rows": 3}),
    )


@conditional_requirements(
    ConditionalRequirement(
        trigger_field="has_medical_conditions",
        trigger_value=True,
        dependent_field="medical_conditions_details",
        message="Medical conditions details are required when you have medical conditions",
    ),
    ConditionalRequirement(
        trigger_field="has_dietary_restrictions",
        trigger_value=True,
        dependent_field="dietary_restrictions_details",
        message="Dietary restrictions details are required when you have dietary restrictions",
    ),
)
class AccommodationsForm(ConditionalRequirementsMixin, forms.Form):
    has_medical_conditions = yes_no_field(
        "Do you have any medical conditions that require special accommodations?"
    )
    medical_conditions_details = details_field(
        "Please describe your medical conditions and required accommodations"
    )
    has_dietary_restrictions = yes_no_field("Do you have any dietary restrictions or allergies?")
    dietary_restrictions_details = details_field(
        "Please describe your dietary restrictions or allergies"
    )
