import json
import re

from django import forms
from django.contrib.staticfiles import finders
from django.core.exceptions import ImproperlyConfigured
from django.test import RequestFactory, SimpleTestCase
from django.urls import reverse

from registrations.forms import AccommodationsForm, ConditionalRequirementsMixin, conditional_requirements
from registrations.rules import (
    VALID,
    ConditionalRequirement,
    client_value,
    container_id,
    evaluate,
    evaluate_all,
    invalid,
    is_blank,
    to_client,
    validate_rules,
)
from registrations.views import SUCCESS_MESSAGE, server_error


MEDICAL_MESSAGE = "Medical conditions details are required when you have medical conditions"
DIETARY_MESSAGE = "Dietary restrictions details are required when you have dietary restrictions"

MEDICAL_RULE = ConditionalRequirement(
    trigger_field="HasMedicalConditions",
    trigger_value=True,
    dependent_field="MedicalConditionsDetails",
    message=MEDICAL_MESSAGE,
)


class ConditionalRequirementRuleTests(SimpleTestCase):
    def test_inactive_trigger_is_valid_whatever_the_dependent_holds(self):
        for details in [None, "", "   ", "Peanut allergy"]:
            record = {"HasMedicalConditions": False, "MedicalConditionsDetails": details}
            self.assertEqual(evaluate(record, MEDICAL_RULE), VALID)

        self.assertEqual(evaluate({"HasMedicalConditions": False}, MEDICAL_RULE), VALID)

    def test_active_trigger_with_text_is_valid(self):
        record = {"HasMedicalConditions": True, "MedicalConditionsDetails": "Peanut allergy"}
        self.assertEqual(evaluate(record, MEDICAL_RULE), VALID)

    def test_active_trigger_with_blank_dependent_is_invalid(self):
        for details in [None, "", "   ", "\t\n"]:
            record = {"HasMedicalConditions": True, "MedicalConditionsDetails": details}
            self.assertEqual(evaluate(record, MEDICAL_RULE), invalid(MEDICAL_MESSAGE))

        self.assertEqual(
            evaluate({"HasMedicalConditions": True}, MEDICAL_RULE),
            invalid(MEDICAL_MESSAGE),
        )

    def test_empty_details_scenario(self):
        outcome = evaluate({"HasMedicalConditions": True, "MedicalConditionsDetails": ""}, MEDICAL_RULE)
        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.message, MEDICAL_MESSAGE)

    def test_null_details_with_false_trigger_scenario(self):
        outcome = evaluate({"HasMedicalConditions": False, "MedicalConditionsDetails": None}, MEDICAL_RULE)
        self.assertTrue(outcome.valid)
        self.assertIsNone(outcome.message)

    def test_evaluation_is_repeatable_and_does_not_touch_the_record(self):
        record = {"HasMedicalConditions": True, "MedicalConditionsDetails": " "}
        snapshot = dict(record)
        first = evaluate(record, MEDICAL_RULE)
        second = evaluate(record, MEDICAL_RULE)
        self.assertEqual(first, second)
        self.assertEqual(record, snapshot)

    def test_trigger_value_is_compared_by_equality(self):
        rule = ConditionalRequirement("contact", "phone", "phone_number", "Phone number is required")
        self.assertTrue(evaluate({"contact": "email", "phone_number": ""}, rule).valid)
        self.assertFalse(evaluate({"contact": "phone", "phone_number": ""}, rule).valid)

    def test_default_message(self):
        rule = ConditionalRequirement("a", True, "b")
        self.assertEqual(evaluate({"a": True}, rule).message, "This field is required")

    def test_is_blank(self):
        self.assertTrue(is_blank(None))
        self.assertTrue(is_blank(""))
        self.assertTrue(is_blank("  \n"))
        self.assertFalse(is_blank("x"))
        self.assertFalse(is_blank(0))


class EvaluateAllTests(SimpleTestCase):
    def setUp(self):
        self.dietary_rule = ConditionalRequirement(
            trigger_field="HasDietaryRestrictions",
            trigger_value=True,
            dependent_field="DietaryRestrictionsDetails",
            message=DIETARY_MESSAGE,
        )

    def test_every_failing_rule_is_reported(self):
        record = {
            "HasMedicalConditions": True,
            "MedicalConditionsDetails": "",
            "HasDietaryRestrictions": True,
            "DietaryRestrictionsDetails": None,
        }
        errors = evaluate_all(record, [MEDICAL_RULE, self.dietary_rule])
        self.assertEqual(
            errors,
            {
                "MedicalConditionsDetails": [MEDICAL_MESSAGE],
                "DietaryRestrictionsDetails": [DIETARY_MESSAGE],
            },
        )

    def test_passing_rules_report_nothing(self):
        record = {
            "HasMedicalConditions": True,
            "MedicalConditionsDetails": "Asthma",
            "HasDietaryRestrictions": False,
            "DietaryRestrictionsDetails": "",
        }
        self.assertEqual(evaluate_all(record, [MEDICAL_RULE, self.dietary_rule]), {})


class RuleConfigurationTests(SimpleTestCase):
    def test_unknown_trigger_field_is_a_configuration_error(self):
        with self.assertRaises(ImproperlyConfigured):
            validate_rules(["MedicalConditionsDetails"], [MEDICAL_RULE])

    def test_unknown_dependent_field_is_a_configuration_error(self):
        with self.assertRaises(ImproperlyConfigured):
            validate_rules(["HasMedicalConditions"], [MEDICAL_RULE])

    def test_self_referencing_rule_is_a_configuration_error(self):
        with self.assertRaises(ImproperlyConfigured):
            validate_rules(["a"], [ConditionalRequirement("a", True, "a")])

    def test_decorator_rejects_form_with_unknown_trigger(self):
        with self.assertRaises(ImproperlyConfigured):

            @conditional_requirements(ConditionalRequirement("missing", True, "details"))
            class BrokenForm(ConditionalRequirementsMixin, forms.Form):
                details = forms.CharField(required=False)

    def test_decorator_inherits_parent_rules(self):
        @conditional_requirements(ConditionalRequirement("has_pets", True, "pets_details"))
        class PetsForm(AccommodationsForm):
            has_pets = forms.BooleanField(required=False)
            pets_details = forms.CharField(required=False)

        self.assertEqual(len(PetsForm.conditional_requirements), 3)
        self.assertEqual(len(AccommodationsForm.conditional_requirements), 2)


class ClientRuleTests(SimpleTestCase):
    def test_client_value_matches_radio_values(self):
        self.assertEqual(client_value(True), "true")
        self.assertEqual(client_value(False), "false")
        self.assertEqual(client_value(None), "")
        self.assertEqual(client_value("phone"), "phone")

    def test_to_client(self):
        self.assertEqual(
            to_client(MEDICAL_RULE),
            {
                "trigger": "HasMedicalConditions",
                "value": "true",
                "dependent": "MedicalConditionsDetails",
                "container": "MedicalConditionsDetails-container",
            },
        )

    def test_client_activation_agrees_with_server_activation(self):
        # The script compares the checked radio value with rule["value"];
        # the server compares the cleaned value with trigger_value.
        for rule in AccommodationsForm.conditional_requirements:
            client_rule = to_client(rule)
            for submitted in ["true", "false", ""]:
                form = AccommodationsForm(data={rule.trigger_field: submitted})
                form.is_valid()
                server_active = rule.dependent_field in form.active_dependents()
                client_active = submitted == client_rule["value"]
                self.assertEqual(server_active, client_active, (rule, submitted))


class ConditionalFormScriptTests(SimpleTestCase):
    def setUp(self):
        path = finders.find("registrations/js/conditional-form.js")
        self.assertIsNotNone(path)
        with open(path, encoding="utf-8") as fh:
            self.script = fh.read()

    def test_script_reads_every_client_rule_key(self):
        for key in to_client(MEDICAL_RULE):
            self.assertIn(f"rule.{key}", self.script)
        self.assertIn("getElementById('conditional-rules')", self.script)

    def test_script_toggles_visibility_required_and_value(self):
        self.assertIn("container.style.display = 'block'", self.script)
        self.assertIn("dependent.setAttribute('required', 'required')", self.script)
        self.assertIn("container.style.display = 'none'", self.script)
        self.assertIn("dependent.removeAttribute('required')", self.script)
        self.assertIn("dependent.value = ''", self.script)
        self.assertIn("addEventListener('change'", self.script)


class AccommodationsFormTests(SimpleTestCase):
    def test_defaults_are_valid(self):
        form = AccommodationsForm(data={})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertFalse(form.cleaned_data["has_medical_conditions"])
        self.assertFalse(form.cleaned_data["has_dietary_restrictions"])

    def test_blank_details_when_triggered(self):
        form = AccommodationsForm(
            data={
                "has_medical_conditions": "true",
                "medical_conditions_details": "",
                "has_dietary_restrictions": "false",
            }
        )
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["medical_conditions_details"], [MEDICAL_MESSAGE])
        self.assertNotIn("dietary_restrictions_details", form.errors)

    def test_whitespace_details_count_as_blank(self):
        form = AccommodationsForm(
            data={"has_medical_conditions": "true", "medical_conditions_details": "   "}
        )
        self.assertFalse(form.is_valid())
        self.assertIn("medical_conditions_details", form.errors)

    def test_both_rules_are_reported_together(self):
        form = AccommodationsForm(
            data={"has_medical_conditions": "true", "has_dietary_restrictions": "true"}
        )
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["medical_conditions_details"], [MEDICAL_MESSAGE])
        self.assertEqual(form.errors["dietary_restrictions_details"], [DIETARY_MESSAGE])

    def test_filled_details_are_accepted(self):
        form = AccommodationsForm(
            data={
                "has_medical_conditions": "true",
                "medical_conditions_details": "Peanut allergy",
                "has_dietary_restrictions": "true",
                "dietary_restrictions_details": "Vegetarian",
            }
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["medical_conditions_details"], "Peanut allergy")

    def test_inactive_details_are_discarded(self):
        form = AccommodationsForm(
            data={"has_medical_conditions": "false", "medical_conditions_details": "stale text"}
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["medical_conditions_details"], "")

    def test_unknown_trigger_value_is_rejected(self):
        form = AccommodationsForm(data={"has_medical_conditions": "maybe"})
        self.assertFalse(form.is_valid())
        self.assertIn("has_medical_conditions", form.errors)

    def test_active_dependent_widget_is_marked_required(self):
        form = AccommodationsForm(data={"has_medical_conditions": "true"})
        form.is_valid()
        self.assertTrue(form.fields["medical_conditions_details"].widget.attrs.get("required"))
        self.assertNotIn("required", form.fields["dietary_restrictions_details"].widget.attrs)
        self.assertEqual(form.active_dependents(), {"medical_conditions_details"})

    def test_unbound_form_has_no_active_dependents(self):
        self.assertEqual(AccommodationsForm().active_dependents(), set())


class ConditionalFormViewTests(SimpleTestCase):
    def setUp(self):
        self.url = reverse("conditional_form")

    def _client_rules(self, html):
        match = re.search(
            r'<script id="conditional-rules" type="application/json">(.*?)</script>',
            html,
            re.DOTALL,
        )
        self.assertIsNotNone(match)
        return json.loads(match.group(1))

    def test_get_renders_form_with_client_rules(self):
        response = self.client.get(self.url, HTTP_HOST="localhost")

        self.assertEqual(response.status_code, 200)
        html = response.content.decode("utf-8")
        rules = self._client_rules(html)
        self.assertEqual([r["trigger"] for r in rules], ["has_medical_conditions", "has_dietary_restrictions"])
        self.assertTrue(all(r["value"] == "true" for r in rules))
        for rule in rules:
            self.assertIn(f'id="{rule["container"]}"', html)
        self.assertIn("registrations/js/conditional-form.js", html)
        self.assertRegex(html, r'<input type="radio" name="has_medical_conditions" value="true"')

    def test_container_ids_come_from_the_rule_module(self):
        response = self.client.get(self.url)
        self.assertContains(response, f'id="{container_id("medical_conditions_details")}"')

    def test_browser_validation_is_left_on(self):
        # the required attribute toggled by the script only blocks submit without novalidate
        response = self.client.get(self.url)
        self.assertContains(response, '<form method="post">')
        self.assertNotContains(response, "novalidate")

    def test_fresh_page_shows_no_rule_messages(self):
        response = self.client.get(self.url)
        self.assertNotContains(response, MEDICAL_MESSAGE)
        self.assertNotContains(response, DIETARY_MESSAGE)
        for rule in self._client_rules(response.content.decode("utf-8")):
            self.assertNotIn("message", rule)

    def test_rejected_post_rerenders_with_errors_and_input(self):
        with self.assertLogs("registrations.views", level="INFO") as logs:
            response = self.client.post(
                self.url,
                {
                    "has_medical_conditions": "true",
                    "medical_conditions_details": "",
                    "has_dietary_restrictions": "true",
                    "dietary_restrictions_details": "Gluten free",
                },
            )

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, MEDICAL_MESSAGE)
        self.assertNotContains(response, DIETARY_MESSAGE)
        self.assertContains(response, "Gluten free")
        html = response.content.decode("utf-8")
        self.assertRegex(
            html,
            re.compile(r'<textarea[^>]*name="medical_conditions_details"[^>]*required', re.DOTALL),
        )
        self.assertIn("rejected: medical_conditions_details", logs.output[0])

    def test_valid_post_redirects_with_success_message(self):
        with self.assertLogs("registrations.views", level="INFO"):
            response = self.client.post(
                self.url,
                {
                    "has_medical_conditions": "true",
                    "medical_conditions_details": "Peanut allergy",
                    "has_dietary_restrictions": "false",
                },
            )
        self.assertRedirects(response, self.url, fetch_redirect_response=False)

        response = self.client.get(self.url)
        self.assertContains(response, SUCCESS_MESSAGE)

    def test_false_triggers_with_no_details_are_accepted(self):
        response = self.client.post(
            self.url,
            {"has_medical_conditions": "false", "has_dietary_restrictions": "false"},
            follow=True,
        )
        self.assertContains(response, SUCCESS_MESSAGE)


class PageTests(SimpleTestCase):
    def test_index_and_privacy(self):
        self.assertContains(self.client.get(reverse("index")), reverse("conditional_form"))
        self.assertContains(self.client.get(reverse("privacy")), "Privacy Policy")

    def test_not_found_page_shows_request_id(self):
        response = self.client.get("/does-not-exist/", HTTP_X_REQUEST_ID="req-123")
        self.assertEqual(response.status_code, 404)
        self.assertContains(response, "req-123", status_code=404)
        self.assertIn("no-cache", response["Cache-Control"])

    def test_server_error_page(self):
        request = RequestFactory().get("/", HTTP_X_REQUEST_ID="req-500")
        with self.assertLogs("registrations.views", level="ERROR"):
            response = server_error(request)
        self.assertEqual(response.status_code, 500)
        self.assertIn(b"req-500", response.content)
