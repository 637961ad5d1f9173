"""
Admin site registry
-------------------
Registro dinâmico dos modelos do funil, assinaturas e lembretes.
Senhas (password_hash) nunca aparecem nas listagens.
"""

import structlog
from django.contrib import admin as django_admin

from . import models

logger = structlog.get_logger(__name__)

# ╭──────────────────────────────────────────────╮
# │ Configuração de cada ModelAdmin             │
# ╰──────────────────────────────────────────────╯
MODEL_ADMIN_REGISTRY: dict[type[models.models.Model], dict] = {
    # 1. Contas
    models.Account: dict(
        list_display=("email", "full_name", "phone", "is_active", "created_at"),
        search_fields=("email", "full_name", "phone"),
        list_filter=("is_active",),
        exclude=("password_hash",),
    ),
    models.Plan: dict(
        list_display=("name", "price", "interval", "active"),
        list_filter=("interval", "active"),
    ),
    # 2. Funil
    models.OtpCode: dict(
        list_display=("phone", "verified", "consumed_at", "expires_at", "created_at"),
        list_filter=("verified",),
        search_fields=("phone", "email"),
        exclude=("code",),
    ),
    models.Registration: dict(
        list_display=("email", "status", "payment_method", "asaas_payment_id", "expires_at", "paid_at"),
        list_filter=("status", "payment_method"),
        search_fields=("email", "asaas_payment_id", "asaas_customer_id"),
        exclude=("password_hash",),
        readonly_fields=("provisioning_claimed_at", "registered_at", "account"),
    ),
    # 3. Assinaturas
    models.Subscription: dict(
        list_display=("account", "status", "is_trial", "current_period_end", "cancel_at_period_end"),
        list_filter=("status", "is_trial", "cancel_at_period_end"),
        search_fields=("account__email", "asaas_subscription_id"),
    ),
    models.PaymentHistory: dict(
        list_display=("asaas_payment_id", "account", "amount", "status", "paid_at"),
        list_filter=("status",),
        search_fields=("asaas_payment_id", "account__email"),
    ),
    # 4. Compromissos
    models.Appointment: dict(
        list_display=("title", "account", "date", "time", "status"),
        list_filter=("status", "date"),
        search_fields=("title", "account__email"),
    ),
    models.AppointmentNotificationSent: dict(
        list_display=("appointment", "notification_type", "success", "sent_at"),
        list_filter=("notification_type", "success"),
    ),
}

# ╭──────────────────────────────────────────────╮
# │ Registro dinâmico                           │
# ╰──────────────────────────────────────────────╯
for model, opts in MODEL_ADMIN_REGISTRY.items():
    admin_class = type(f"{model.__name__}Admin", (django_admin.ModelAdmin,), opts)
    django_admin.site.register(model, admin_class)
    logger.debug("admin.model_registered", model=model.__name__)
