# conditional_form/urls.py
from django.urls import path, include

urlpatterns = [
    # Public pages (home, conditional form, privacy)
    path("", include("registrations.urls")),
]

handler404 = "registrations.views.page_not_found"
handler500 = "registrations.views.server_error"
