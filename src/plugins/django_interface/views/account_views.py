from drf_yasg.utils import swagger_auto_schema
from iafe_core.adapters.config.composition_root import container as core_container
from iafe_core.core.application.queries.account_queries import ResolveAccountByPhoneQuery
from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from plugins.django_interface.permissions import HasServiceToken
from plugins.django_interface.serializers import CancellationSerializer
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.subscription_commands import CancelSubscriptionCommand

core_query_bus = core_container.query_bus()
sb_command_bus = sb_container.command_bus()


class AccountByPhoneView(APIView):
    """Telefone (qualquer formato) → conta. Usado pelo agente do WhatsApp."""

    permission_classes = [HasServiceToken]
    authentication_classes = []

    def get(self, request):
        dto = core_query_bus.dispatch(ResolveAccountByPhoneQuery(phone=request.query_params.get("phone", "")))
        return Response(dto.model_dump())


class CancelSubscriptionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(responses={200: CancellationSerializer})
    def post(self, request):
        res = sb_command_bus.dispatch(CancelSubscriptionCommand(account_id=str(request.user.id)))
        return Response(res.as_payload())
