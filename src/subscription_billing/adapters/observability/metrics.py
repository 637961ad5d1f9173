from prometheus_client import Counter

# registradas no REGISTRY padrão → expostas em /metrics/ pelo django-prometheus
RECONCILIATION_OUTCOME = Counter(
    "registration_reconciliation_total",
    "Resultados de conciliação de cadastro",
    ["source", "outcome"],
)

PROVISIONING_COUNT = Counter(
    "registration_provisioning_total",
    "Tentativas de criação de conta a partir de cadastro pago",
    ["result"],
)

SUBSCRIPTION_CANCEL_COUNT = Counter(
    "subscription_cancel_total",
    "Cancelamentos de assinatura",
    ["effective", "gateway"],
)
