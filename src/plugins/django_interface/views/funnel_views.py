from django.http import QueryDict
from drf_yasg.utils import swagger_auto_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from plugins.django_interface.serializers import (
    ChargeSerializer,
    IssueOtpSerializer,
    RegistrationStatusSerializer,
    StartRegistrationSerializer,
    TrialRegistrationSerializer,
    VerifyOtpSerializer,
)
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.otp_commands import IssueOtpCommand, VerifyOtpCommand
from subscription_billing.core.application.commands.registration_commands import (
    CreateChargeCommand,
    PollPaymentStatusCommand,
    RegisterTrialCommand,
    StartRegistrationCommand,
)
from subscription_billing.core.application.queries.registration_queries import GetOpenRegistrationQuery

command_bus = sb_container.command_bus()
query_bus = sb_container.query_bus()


def request_payload(request) -> dict:
    """Corpo da requisição como dict simples (JSON, form ou multipart)."""
    data = request.data
    if isinstance(data, QueryDict):
        # dict(QueryDict) devolve listas; .dict() fica com o último valor de cada chave
        return data.dict()
    return dict(data) if isinstance(data, dict) else {}


class PublicAPIView(APIView):
    """Funil é anônimo: sem JWT, sem CSRF."""

    permission_classes = [permissions.AllowAny]
    authentication_classes = []


# ╭──────────────────────────────────────────────╮
# │ OTP (WhatsApp)                              │
# ╰──────────────────────────────────────────────╯
class IssueOtpView(PublicAPIView):
    @swagger_auto_schema(request_body=IssueOtpSerializer)
    def post(self, request):
        data = request.data
        result = command_bus.dispatch(
            IssueOtpCommand(
                phone=data.get("phone", ""),
                email=data.get("email") or None,
                full_name=data.get("full_name") or None,
                country=data.get("pais") or None,
            )
        )
        return Response(result.as_payload())


class VerifyOtpView(PublicAPIView):
    @swagger_auto_schema(request_body=VerifyOtpSerializer)
    def post(self, request):
        command_bus.dispatch(
            VerifyOtpCommand(phone=request.data.get("phone", ""), code=str(request.data.get("code", "")))
        )
        return Response({"success": True, "verified": True})


# ╭──────────────────────────────────────────────╮
# │ Cadastro pago                               │
# ╰──────────────────────────────────────────────╯
class StartRegistrationView(PublicAPIView):
    @swagger_auto_schema(request_body=StartRegistrationSerializer)
    def post(self, request):
        res = command_bus.dispatch(StartRegistrationCommand(payload=request_payload(request)))
        body = {
            "registration_id": res.registration_id,
            "customer_id": res.customer_id,
            "status": res.status,
            "expires_at": res.expires_at,
            "reused": res.reused,
        }
        return Response(body, status=status.HTTP_200_OK if res.reused else status.HTTP_201_CREATED)


class OpenRegistrationView(PublicAPIView):
    upstream_pending_response = True

    def get(self, request):
        view = query_bus.dispatch(GetOpenRegistrationQuery(email=request.query_params.get("email", "")))
        return Response(
            {
                "registration_id": view.registration_id,
                "email": view.email,
                "status": view.status,
                "expires_at": view.expires_at,
                "payment_id": view.payment_id,
                "payment_method": view.payment_method,
                "invoice_url": view.invoice_url,
                "boleto_url": view.boleto_url,
                "pix_code": view.pix_code,
                "pix_qr_code": view.pix_qr_code,
            }
        )


class CreateChargeView(PublicAPIView):
    @swagger_auto_schema(request_body=ChargeSerializer)
    def post(self, request, registration_id):
        res = command_bus.dispatch(
            CreateChargeCommand(
                registration_id=str(registration_id),
                billing_type=str(request.data.get("billing_type", "")).upper(),
            )
        )
        return Response(
            {
                "registration_id": res.registration_id,
                "payment_id": res.payment_id,
                "billing_type": res.billing_type,
                "value": res.value,
                "due_date": res.due_date,
                "invoice_url": res.invoice_url,
                "boleto_url": res.boleto_url,
                "pix_code": res.pix_code,
                "pix_qr_code": res.pix_qr_code,
                "pix_expiration": res.pix_expiration,
            },
            status=status.HTTP_201_CREATED,
        )


class RegistrationStatusView(PublicAPIView):
    """
    Polling do front enquanto o pagamento não confirma.

    Gateway indisponível nunca vira "não pago": responde 202 com retry=true.
    """

    upstream_pending_response = True

    @swagger_auto_schema(responses={200: RegistrationStatusSerializer, 202: RegistrationStatusSerializer})
    def get(self, request, registration_id):
        res = command_bus.dispatch(PollPaymentStatusCommand(registration_id=str(registration_id)))
        body = {
            "registration_id": res.registration_id,
            "status": res.status,
            "paid": res.is_paid,
            "account_id": res.account_id,
            "retry": res.retry,
            "detail": res.detail,
        }
        return Response(body, status=status.HTTP_202_ACCEPTED if res.retry else status.HTTP_200_OK)


# ╭──────────────────────────────────────────────╮
# │ Trial                                       │
# ╰──────────────────────────────────────────────╯
class TrialRegistrationView(PublicAPIView):
    @swagger_auto_schema(request_body=TrialRegistrationSerializer)
    def post(self, request):
        res = command_bus.dispatch(RegisterTrialCommand(payload=request_payload(request)))
        return Response(
            {
                "account_id": res.account_id,
                "subscription_id": res.subscription_id,
                "trial_ends_at": res.trial_ends_at,
            },
            status=status.HTTP_201_CREATED,
        )
