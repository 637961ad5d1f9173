from datetime import timedelta

from dependency_injector import containers, providers

container = None


def setup_di_container_from_settings(settings):
    """Inicializa o DI container dos lembretes de compromisso."""
    global container  # noqa: PLW0603
    if container is not None:
        return container

    import structlog
    from iafe_core.adapters.config.composition_root import (
        setup_di_container_from_settings as setup_core_container,
    )
    from iafe_core.adapters.notifiers.registry import get_notifier
    from iafe_core.core.application.cqrs import CommandBusImpl

    from appointment_notification.adapters.repositories.appointment_repo_impl import AppointmentRepoImpl
    from appointment_notification.adapters.repositories.notification_ledger_repo_impl import (
        NotificationLedgerRepoImpl,
    )
    from appointment_notification.core.application.commands.notification_commands import (
        RunAppointmentNotificationsCommand,
    )
    from appointment_notification.core.application.handlers.notification_handlers import (
        RunAppointmentNotificationsHandler,
    )

    core = setup_core_container(settings)

    class Container(containers.DeclarativeContainer):
        config = providers.Configuration()

        event_dispatcher = providers.Object(core.event_dispatcher())
        command_bus = providers.Singleton(CommandBusImpl, dispatcher=event_dispatcher)

        reminder_notifier = providers.Singleton(get_notifier, channel="appointment_reminder")
        appointment_repo = providers.Singleton(AppointmentRepoImpl)
        ledger_repo = providers.Singleton(NotificationLedgerRepoImpl)

        run_appointment_notifications_handler = providers.Factory(
            RunAppointmentNotificationsHandler,
            appointment_repo=appointment_repo,
            ledger_repo=ledger_repo,
            notifier=reminder_notifier,
            tolerance=config.tolerance,
            tz_name=config.tz_name,
        )

        def init(self):
            self.command_bus().register(
                RunAppointmentNotificationsCommand, self.run_appointment_notifications_handler()
            )

    container = Container()
    container.config.tolerance.from_value(timedelta(minutes=settings.REMINDER_TOLERANCE_MINUTES))
    container.config.tz_name.from_value(settings.TIME_ZONE)

    Container.init(container)
    structlog.get_logger(__name__).debug("appointment_notification.container_ready")
    return container
