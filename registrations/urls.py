# registrations/urls.py
from django.urls import path

from .views import (
    index,
    conditional_form,
    privacy,
)

urlpatterns = [
    path("", index, name="index"),

    # ---------- CONDITIONAL FORM (GET renders, POST validates) ----------
    path("conditional-form/", conditional_form, name="conditional_form"),

    path("privacy/", privacy, name="privacy"),
]
