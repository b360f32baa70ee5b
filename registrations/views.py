# registrations/views.py
import logging
import uuid

from django.contrib import messages
from django.shortcuts import render, redirect
from django.views.decorators.cache import never_cache

from .forms import AccommodationsForm


logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Form submitted successfully!"


def _request_id(request) -> str:
    return request.headers.get("X-Request-ID") or uuid.uuid4().hex


def index(request):
    return render(request, "registrations/index.html")


def conditional_form(request):
    if request.method == "POST":
        form = AccommodationsForm(request.POST)
        if form.is_valid():
            logger.info(
                "Accommodations form accepted (medical=%s, dietary=%s)",
                form.cleaned_data["has_medical_conditions"],
                form.cleaned_data["has_dietary_restrictions"],
            )
            messages.success(request, SUCCESS_MESSAGE)
            return redirect("conditional_form")

        logger.info("Accommodations form rejected: %s", ", ".join(sorted(form.errors)))
    else:
        form = AccommodationsForm()

    return render(
        request,
        "registrations/conditional_form.html",
        {"form": form, "client_rules": form.client_rules()},
    )


def privacy(request):
    return render(request, "registrations/privacy.html")


# ----------------------------
# Error pages
# ----------------------------
@never_cache
def page_not_found(request, exception=None):
    return render(
        request,
        "registrations/error.html",
        {"request_id": _request_id(request), "title": "Page not found"},
        status=404,
    )


@never_cache
def server_error(request):
    request_id = _request_id(request)
    logger.error("Server error rendered for request %s", request_id)
    return render(
        request,
        "registrations/error.html",
        {"request_id": request_id, "title": "Error"},
        status=500,
    )
