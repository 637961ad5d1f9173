from django.urls import path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

from plugins.django_interface.views.account_views import AccountByPhoneView, CancelSubscriptionView
from plugins.django_interface.views.funnel_views import (
    CreateChargeView,
    IssueOtpView,
    OpenRegistrationView,
    RegistrationStatusView,
    StartRegistrationView,
    TrialRegistrationView,
    VerifyOtpView,
)
from plugins.django_interface.views.ops_views import HealthCheckView, RunAppointmentNotificationsView
from plugins.django_interface.views.webhook_views import AsaasWebhookView

schema_view = get_schema_view(
    openapi.Info(
        title="IAFÉ Finanças API",
        default_version="v1",
        description="Cadastro, conciliação de pagamentos e lembretes",
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
)

urlpatterns = [
    # Funil
    path("otp/", IssueOtpView.as_view(), name="otp-issue"),
    path("otp/verify/", VerifyOtpView.as_view(), name="otp-verify"),
    path("registrations/", StartRegistrationView.as_view(), name="registration-start"),
    path("registrations/open/", OpenRegistrationView.as_view(), name="registration-open"),
    path("registrations/trial/", TrialRegistrationView.as_view(), name="registration-trial"),
    path("registrations/<uuid:registration_id>/charge/", CreateChargeView.as_view(), name="registration-charge"),
    path("registrations/<uuid:registration_id>/status/", RegistrationStatusView.as_view(), name="registration-status"),
    # Gateway
    path("webhooks/asaas/", AsaasWebhookView.as_view(), name="webhook-asaas"),
    # Conta / assinatura
    path("accounts/by-phone/", AccountByPhoneView.as_view(), name="account-by-phone"),
    path("subscriptions/cancel/", CancelSubscriptionView.as_view(), name="subscription-cancel"),
    # Operação
    path("appointments/notifications/run/", RunAppointmentNotificationsView.as_view(), name="appointment-notifications-run"),
    path("health/", HealthCheckView.as_view(), name="health"),
    # Docs
    path("swagger/", schema_view.with_ui("swagger", cache_timeout=0), name="schema-swagger-ui"),
    path("redoc/", schema_view.with_ui("redoc", cache_timeout=0), name="schema-redoc"),
]
