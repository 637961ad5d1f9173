from unittest.mock import patch

from iafe_core.adapters.notifiers.webhook.n8n_webhook import N8nWebhookNotifier

from subscription_billing.adapters.api_clients.asaas_api_client import AsaasAPIClient


def patch_gateway(testcase, **methods):
    """
    Patcha métodos do AsaasAPIClient no nível da classe (vale para a
    instância singleton do container) e devolve {nome: mock}.

    Exceções e callables viram `side_effect`; o resto, `return_value`.
    """
    mocks = {}
    for name, value in methods.items():
        if callable(value) or isinstance(value, BaseException):
            p = patch.object(AsaasAPIClient, name, side_effect=value)
        else:
            p = patch.object(AsaasAPIClient, name, return_value=value)
        mocks[name] = p.start()
        testcase.addCleanup(p.stop)
    return mocks


def patch_webhook_send(testcase, **kwargs):
    """Intercepta o envio dos webhooks n8n (OTP e lembretes)."""
    if "side_effect" not in kwargs:
        kwargs.setdefault("return_value", "ok")
    p = patch.object(N8nWebhookNotifier, "send", **kwargs)
    mock = p.start()
    testcase.addCleanup(p.stop)
    return mock
