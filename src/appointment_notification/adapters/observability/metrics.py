from prometheus_client import Counter

REMINDER_OUTCOME = Counter(
    "appointment_reminder_total",
    "Lembretes de compromisso por resultado",
    ["notification_type", "outcome"],
)
