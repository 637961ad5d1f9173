from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from plugins.django_interface.models import Plan

DEFAULT_PLANS = [
    {
        "name": "IAFÉ Mensal",
        "description": "Acesso completo ao assistente financeiro no WhatsApp.",
        "price": Decimal("29.90"),
        "interval": Plan.Interval.MONTHLY,
    },
    {
        "name": "IAFÉ Anual",
        "description": "Plano anual com desconto.",
        "price": Decimal("299.00"),
        "interval": Plan.Interval.YEARLY,
    },
]


class Command(BaseCommand):
    help = "Cria (ou atualiza) os planos padrão."

    def add_arguments(self, parser):
        parser.add_argument("--monthly-price", type=Decimal, help="Sobrescreve o preço do plano mensal.")

    @transaction.atomic
    def handle(self, *args, **opts):
        for plan_data in DEFAULT_PLANS:
            defaults = dict(plan_data)
            name = defaults.pop("name")
            if opts.get("monthly_price") is not None and defaults["interval"] == Plan.Interval.MONTHLY:
                defaults["price"] = opts["monthly_price"]
            plan, created = Plan.objects.update_or_create(name=name, defaults={**defaults, "active": True})
            verb = "criado" if created else "atualizado"
            self.stdout.write(self.style.SUCCESS(f"Plano {verb}: {plan}"))
