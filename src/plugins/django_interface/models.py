"""
Domínio → ORM
-------------
O banco é o único árbitro de concorrência:

⚑ transições de status são UPDATEs condicionados ao status anterior
⚑ no máximo um cadastro aberto (pending_payment | paid) por e-mail (UK parcial)
⚑ no máximo um lembrete por (compromisso, tipo) (UK composta)
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import Index, Q, UniqueConstraint
from django.db.models.functions import Lower


# ╭──────────────────────────────────────────────╮
# │ 1. Contas                                    │
# ╰──────────────────────────────────────────────╯
class Account(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, max_length=254)
    password_hash = models.CharField(max_length=128)
    full_name = models.CharField(max_length=150)
    # gravado como veio do cadastro; a forma canônica não é garantida
    phone = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "accounts"
        indexes = [
            Index(Lower("email"), name="account_email_lower_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} <{self.email}>"


# ╭──────────────────────────────────────────────╮
# │ 2. Planos                                    │
# ╰──────────────────────────────────────────────╯
class Plan(models.Model):
    class Interval(models.TextChoices):
        MONTHLY = "monthly", "Mensal"
        YEARLY = "yearly", "Anual"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, null=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    interval = models.CharField(max_length=10, choices=Interval.choices, default=Interval.MONTHLY)
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "plans"
        ordering = ["price"]

    def __str__(self) -> str:
        return f"{self.name} (R$ {self.price}/{self.interval})"


# ╭──────────────────────────────────────────────╮
# │ 3. Códigos OTP                               │
# ╰──────────────────────────────────────────────╯
class OtpCode(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    phone = models.CharField(max_length=20, db_index=True, help_text="Somente dígitos")
    code = models.CharField(max_length=6)
    email = models.EmailField(blank=True, null=True)
    full_name = models.CharField(max_length=150, blank=True, null=True)
    expires_at = models.DateTimeField()
    verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(blank=True, null=True)
    consumed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "otp_codes"
        indexes = [
            Index(fields=["phone", "verified", "expires_at"]),
        ]

    def __str__(self) -> str:
        return f"OTP {self.phone} [{'verificado' if self.verified else 'pendente'}]"


# ╭──────────────────────────────────────────────╮
# │ 4. Cadastro em andamento (funil)             │
# ╰──────────────────────────────────────────────╯
class Registration(models.Model):
    class Status(models.TextChoices):
        PENDING_PAYMENT = "pending_payment", "Aguardando pagamento"
        PAID = "paid", "Pago"
        REGISTERED = "registered", "Conta criada"
        EXPIRED = "expired", "Expirado"
        CANCELLED = "cancelled", "Cancelado"

    class PaymentMethod(models.TextChoices):
        PIX = "PIX", "Pix"
        BOLETO = "BOLETO", "Boleto"
        CREDIT_CARD = "CREDIT_CARD", "Cartão de crédito"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(max_length=254, help_text="Sempre em minúsculas")
    full_name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20)
    password_hash = models.CharField(
        max_length=128, blank=True, default="", help_text="bcrypt; apagado após a criação da conta"
    )
    cpf_cnpj = models.CharField(max_length=18, blank=True, null=True)
    plan = models.ForeignKey(Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name="registrations")

    # vínculo com o gateway
    asaas_customer_id = models.CharField(max_length=64, blank=True, null=True)
    asaas_payment_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True, null=True)
    invoice_url = models.URLField(max_length=500, blank=True, null=True)
    boleto_url = models.URLField(max_length=500, blank=True, null=True)
    pix_code = models.TextField(blank=True, null=True)
    pix_qr_code = models.TextField(blank=True, null=True, help_text="Imagem base64 devolvida pelo gateway")

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING_PAYMENT, db_index=True
    )
    expires_at = models.DateTimeField()
    paid_at = models.DateTimeField(blank=True, null=True)
    provisioning_claimed_at = models.DateTimeField(blank=True, null=True)
    registered_at = models.DateTimeField(blank=True, null=True)
    account = models.ForeignKey(
        Account, on_delete=models.SET_NULL, null=True, blank=True, related_name="registrations"
    )
    terms_accepted_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "pending_registrations"
        ordering = ["-created_at"]
        constraints = [
            UniqueConstraint(
                fields=["email"],
                condition=Q(status__in=["pending_payment", "paid"]),
                name="uq_registration_open_per_email",
            ),
        ]
        indexes = [
            Index(fields=["status", "expires_at"]),
            Index(fields=["asaas_customer_id"]),
        ]

    def __str__(self) -> str:
        return f"Cadastro {self.email} [{self.status}]"


# ╭──────────────────────────────────────────────╮
# │ 5. Assinaturas e pagamentos                  │
# ╰──────────────────────────────────────────────╯
class Subscription(models.Model):
    class Status(models.TextChoices):
        TRIALING = "trialing", "Teste grátis"
        ACTIVE = "active", "Ativa"
        CANCEL_PENDING = "cancel_pending", "Cancelamento agendado"
        CANCELLED = "cancelled", "Cancelada"
        EXPIRED = "expired", "Expirada"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.OneToOneField(Account, on_delete=models.CASCADE, related_name="subscription")
    plan = models.ForeignKey(Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name="subscriptions")
    status = models.CharField(max_length=20, choices=Status.choices, db_index=True)
    is_trial = models.BooleanField(default=False)
    current_period_start = models.DateTimeField()
    current_period_end = models.DateTimeField(db_index=True)
    trial_ends_at = models.DateTimeField(blank=True, null=True)
    cancel_at_period_end = models.BooleanField(default=False)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    asaas_customer_id = models.CharField(max_length=64, blank=True, null=True)
    asaas_subscription_id = models.CharField(max_length=64, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "subscriptions"
        indexes = [
            Index(fields=["status", "current_period_end"]),
        ]

    def __str__(self) -> str:
        return f"Assinatura {self.account_id} [{self.status}]"


class PaymentHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(Account, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments")
    subscription = models.ForeignKey(
        Subscription, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    asaas_payment_id = models.CharField(max_length=64, unique=True)
    asaas_customer_id = models.CharField(max_length=64, blank=True, null=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=30)
    payment_method = models.CharField(max_length=20, blank=True, null=True)
    invoice_url = models.URLField(max_length=500, blank=True, null=True)
    due_date = models.DateField(blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payment_history"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.asaas_payment_id} R$ {self.amount} [{self.status}]"


# ╭──────────────────────────────────────────────╮
# │ 6. Compromissos e lembretes                  │
# ╰──────────────────────────────────────────────╯
class Appointment(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pendente"
        COMPLETED = "completed", "Concluído"
        CANCELLED = "cancelled", "Cancelado"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name="appointments")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    date = models.DateField()
    time = models.TimeField(blank=True, null=True, help_text="Horário local; vazio = 00:00")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "appointments"
        ordering = ["date", "time"]
        indexes = [
            Index(fields=["status", "date"]),
        ]

    def __str__(self) -> str:
        return f"{self.title} @ {self.date} {self.time or ''}".strip()


class AppointmentNotificationSent(models.Model):
    """Ledger de idempotência: a existência da linha significa 'já tentado'."""

    class NotificationType(models.TextChoices):
        ONE_HOUR_FIFTEEN_BEFORE = "1_hour_15_minutes_before", "1h15 antes"
        ONE_HOUR_BEFORE = "1_hour_before", "1h antes"
        FIFTEEN_MINUTES_BEFORE = "15_minutes_before", "15 min antes"
        NOW = "now", "Agora"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="notifications_sent")
    notification_type = models.CharField(max_length=30, choices=NotificationType.choices)
    success = models.BooleanField(blank=True, null=True, help_text="Vazio enquanto o envio está em andamento")
    webhook_response = models.TextField(blank=True, null=True)
    sent_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "appointment_notifications_sent"
        constraints = [
            UniqueConstraint(
                fields=["appointment", "notification_type"],
                name="uq_appointment_notification_type",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_id} · {self.notification_type}"
