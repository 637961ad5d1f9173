from rest_framework import serializers

# ───────────────────────────────────────────────
# Entradas (documentação no swagger + validação leve)
# A validação de negócio fica nos DTOs pydantic dos handlers.
# ───────────────────────────────────────────────


class IssueOtpSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True)
    full_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    pais = serializers.CharField(required=False, allow_blank=True, max_length=40)


class VerifyOtpSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    code = serializers.CharField(max_length=6, min_length=6)


class StartRegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=32)
    password = serializers.CharField(write_only=True, min_length=6)
    cpf_cnpj = serializers.CharField(required=False, allow_blank=True)
    plan_id = serializers.UUIDField(required=False)
    terms_accepted = serializers.BooleanField(required=False, default=False)


class TrialRegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=32)
    password = serializers.CharField(write_only=True, min_length=6)
    otp_code = serializers.CharField(max_length=6, min_length=6)
    plan_id = serializers.UUIDField(required=False)


class ChargeSerializer(serializers.Serializer):
    billing_type = serializers.ChoiceField(choices=["PIX", "BOLETO", "CREDIT_CARD"])


class RunNotificationsSerializer(serializers.Serializer):
    dry_run = serializers.BooleanField(required=False, default=False)


# ───────────────────────────────────────────────
# Saídas
# ───────────────────────────────────────────────
class RegistrationStatusSerializer(serializers.Serializer):
    registration_id = serializers.UUIDField(allow_null=True)
    status = serializers.CharField()
    paid = serializers.BooleanField()
    account_id = serializers.UUIDField(allow_null=True)
    retry = serializers.BooleanField()
    detail = serializers.CharField(allow_blank=True)


class CancellationSerializer(serializers.Serializer):
    message = serializers.CharField()
    effective = serializers.ChoiceField(choices=["immediate", "end_of_period"])
    accessUntil = serializers.DateTimeField(required=False)  # noqa: N815
    gateway = serializers.CharField()
