import structlog
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from plugins.django_interface.permissions import IsAsaasWebhook
from plugins.django_interface.views.funnel_views import request_payload
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import ReconcileWebhookCommand

logger = structlog.get_logger(__name__)
command_bus = sb_container.command_bus()


class AsaasWebhookView(APIView):
    """
    Recebe eventos de cobrança do Asaas.

    Qualquer payload reconhecido (inclusive cadastro desconhecido) responde 200
    para o gateway parar de reenviar. Falha de rede ao localizar o cadastro
    responde 503 e o Asaas reentrega.
    """

    permission_classes = [IsAsaasWebhook]
    authentication_classes = []

    def post(self, request):
        res = command_bus.dispatch(ReconcileWebhookCommand(payload=request_payload(request)))
        logger.info(
            "webhook.asaas_processed",
            registration_id=res.registration_id,
            status=res.status,
            applied=res.applied,
            detail=res.detail,
        )
        return Response(
            {"received": True, "status": res.status, "applied": res.applied, "detail": res.detail},
            status=status.HTTP_200_OK,
        )
