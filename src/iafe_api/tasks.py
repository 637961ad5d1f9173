from __future__ import annotations

import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

import structlog
from celery import Task, shared_task
from django.core.cache import cache
from django.db import DatabaseError

from appointment_notification.adapters.config.composition_root import container as an_container
from appointment_notification.core.application.commands.notification_commands import (
    RunAppointmentNotificationsCommand,
)
from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import (
    ExpireRegistrationsCommand,
    ResumeProvisioningCommand,
)
from subscription_billing.core.application.commands.subscription_commands import ExpireSubscriptionsCommand

log = structlog.get_logger(__name__)

# ──────────────────────────────────────────────────────────────────────────
# Constantes de filas e parâmetros
# ──────────────────────────────────────────────────────────────────────────
QUEUE_DEFAULT      = "default"
QUEUE_REMINDERS    = "reminders"
SWEEP_LOCK_TTL_SEC = 10 * 60   # maior que a duração típica de uma varredura
DB_RETRY_SECONDS   = 30


# ──────────────────────────────────────────────────────────────────────────
# Base Task com DLQ
# ──────────────────────────────────────────────────────────────────────────
class BaseTaskWithDLQ(Task):
    """
    Envia p/ Dead Letter Queue quando falhar após todas as retentativas.
    Em 'task_always_eager' não há broker: apenas loga.
    """

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        if bool(getattr(self.app.conf, "task_always_eager", False)):
            log.critical("task.failed_eager_mode", task=self.name, task_id=task_id, error=str(exc))
        else:
            log.critical("task.failed_dlq_redirect", task=self.name, task_id=task_id, error=str(exc), queue="dead_letter")
            self.app.send_task(self.name, args=args, kwargs=kwargs, queue="dead_letter", routing_key="dead_letter")
        super().on_failure(exc, task_id, args, kwargs, einfo)


# ──────────────────────────────────────────────────────────────────────────
# Lock por varredura (duas execuções do beat não se sobrepõem)
# ──────────────────────────────────────────────────────────────────────────
@contextmanager
def sweep_lock(name: str, ttl: int = SWEEP_LOCK_TTL_SEC):
    """
    Exclusão via cache.add (Redis em produção). A correção não depende do
    lock: toda escrita das varreduras já é condicionada ao estado esperado.
    """
    key = f"locks:sweep:{name}"
    acquired = cache.add(key, str(time.time()), ttl)
    try:
        yield acquired
    finally:
        if acquired:
            cache.delete(key)


def _run_sweep(task: Task, name: str, run: Callable[[], Any]) -> Any:
    with sweep_lock(name) as ok:
        if not ok:
            log.info("sweep.busy", sweep=name)
            return None
        try:
            return run()
        except DatabaseError as exc:
            log.error("sweep.db_error", sweep=name, error=str(exc))
            raise task.retry(exc=exc, countdown=DB_RETRY_SECONDS)  # noqa: B904


# ──────────────────────────────────────────────────────────────────────────
# Funil de cadastro
# ──────────────────────────────────────────────────────────────────────────
@shared_task(base=BaseTaskWithDLQ, bind=True, max_retries=3, acks_late=True, queue=QUEUE_DEFAULT)
def expire_registrations(self):
    """Cadastros pending_payment com prazo vencido → expired."""
    expired = _run_sweep(
        self, "expire_registrations", lambda: sb_container.command_bus().dispatch(ExpireRegistrationsCommand())
    )
    log.info("sweep.expire_registrations.done", expired=expired)
    return expired


@shared_task(base=BaseTaskWithDLQ, bind=True, max_retries=3, acks_late=True, queue=QUEUE_DEFAULT)
def resume_provisioning(self, limit: int = 100):
    """Conclui cadastros presos em paid cujo lease de provisionamento expirou."""
    results = _run_sweep(
        self,
        "resume_provisioning",
        lambda: sb_container.command_bus().dispatch(ResumeProvisioningCommand(limit=limit)),
    )
    if results is None:
        return None
    summary = {"resumed": len(results), "registered": sum(1 for r in results if r.status == "registered")}
    log.info("sweep.resume_provisioning.done", **summary)
    return summary


# ──────────────────────────────────────────────────────────────────────────
# Assinaturas
# ──────────────────────────────────────────────────────────────────────────
@shared_task(base=BaseTaskWithDLQ, bind=True, max_retries=3, acks_late=True, queue=QUEUE_DEFAULT)
def expire_subscriptions(self):
    closed = _run_sweep(
        self, "expire_subscriptions", lambda: sb_container.command_bus().dispatch(ExpireSubscriptionsCommand())
    )
    log.info("sweep.expire_subscriptions.done", closed=closed)
    return closed


# ──────────────────────────────────────────────────────────────────────────
# Lembretes de compromissos
# ──────────────────────────────────────────────────────────────────────────
@shared_task(base=BaseTaskWithDLQ, bind=True, max_retries=2, acks_late=True, queue=QUEUE_REMINDERS)
def run_appointment_notifications(self):
    """
    Uma varredura de lembretes. Falhas de envio ficam no ledger e não são
    reenviadas; só erro de banco provoca retry da task.
    """
    report = _run_sweep(
        self,
        "appointment_notifications",
        lambda: an_container.command_bus().dispatch(RunAppointmentNotificationsCommand()),
    )
    return report.as_payload() if report is not None else None
