from datetime import timedelta

from dependency_injector import containers, providers

container = None


def setup_di_container_from_settings(settings):  # noqa: PLR0915
    """Inicializa o DI container do funil/assinaturas após o Django carregar os settings."""
    global container  # noqa: PLW0603
    if container is not None:
        import structlog
        structlog.get_logger().debug("DI container já inicializado.")
        return container

    # ------- IMPORTS DE INFRA E ADAPTERS -------
    import structlog
    from iafe_core.adapters.config.composition_root import (
        setup_di_container_from_settings as setup_core_container,
    )
    from iafe_core.adapters.notifiers.registry import get_notifier
    from iafe_core.core.application.cqrs import CommandBusImpl, QueryBusImpl

    from subscription_billing.adapters.api_clients.asaas_api_client import AsaasAPIClient
    from subscription_billing.adapters.repositories.otp_repo_impl import OtpRepoImpl
    from subscription_billing.adapters.repositories.payment_history_repo_impl import PaymentHistoryRepoImpl
    from subscription_billing.adapters.repositories.plan_repo_impl import PlanRepoImpl
    from subscription_billing.adapters.repositories.registration_repo_impl import RegistrationRepoImpl
    from subscription_billing.adapters.repositories.subscription_repo_impl import SubscriptionRepoImpl

    # ------- IMPORTS DO CORE DE SUBSCRIPTION_BILLING -------
    # Commands / Queries
    from subscription_billing.core.application.commands.otp_commands import IssueOtpCommand, VerifyOtpCommand
    from subscription_billing.core.application.commands.registration_commands import (
        CreateChargeCommand,
        ExpireRegistrationsCommand,
        PollPaymentStatusCommand,
        ReconcileWebhookCommand,
        RegisterTrialCommand,
        ResumeProvisioningCommand,
        StartRegistrationCommand,
    )
    from subscription_billing.core.application.commands.subscription_commands import (
        CancelSubscriptionCommand,
        ExpireSubscriptionsCommand,
    )

    # Handlers
    from subscription_billing.core.application.handlers.otp_handlers import IssueOtpHandler, VerifyOtpHandler
    from subscription_billing.core.application.handlers.reconciliation_handlers import (
        ExpireRegistrationsHandler,
        PollPaymentStatusHandler,
        ReconcileWebhookHandler,
        ResumeProvisioningHandler,
    )
    from subscription_billing.core.application.handlers.registration_handlers import (
        CreateChargeHandler,
        GetOpenRegistrationHandler,
        StartRegistrationHandler,
    )
    from subscription_billing.core.application.handlers.subscription_handlers import (
        CancelSubscriptionHandler,
        ExpireSubscriptionsHandler,
    )
    from subscription_billing.core.application.handlers.trial_handlers import RegisterTrialHandler
    from subscription_billing.core.application.queries.registration_queries import GetOpenRegistrationQuery

    # Serviços de aplicação
    from subscription_billing.core.application.services.account_provisioning_service import (
        AccountProvisioningService,
    )
    from subscription_billing.core.application.services.reconciliation_service import ReconciliationService
    from subscription_billing.core.application.services.subscription_lifecycle import SubscriptionLifecycle

    core = setup_core_container(settings)

    # ------- DECLARAÇÃO DO CONTAINER -------
    class Container(containers.DeclarativeContainer):
        config = providers.Configuration()

        logger = providers.Singleton(structlog.get_logger)
        event_dispatcher = providers.Object(core.event_dispatcher())

        # CQRS
        command_bus = providers.Singleton(CommandBusImpl, dispatcher=event_dispatcher)
        query_bus = providers.Singleton(QueryBusImpl)

        # Núcleo compartilhado (identidade)
        account_repo = providers.Object(core.account_repo())
        hash_service = providers.Object(core.hash_service())
        phone_resolver = providers.Object(core.phone_resolver())

        # Gateway e notificador
        gateway = providers.Singleton(
            AsaasAPIClient,
            base_url=config.asaas.url,
            api_key=config.asaas.api_key,
            timeout=config.asaas.timeout,
        )
        otp_notifier = providers.Singleton(get_notifier, channel="otp")

        # Implementações de Repositórios (Ports → Adapters)
        registration_repo = providers.Singleton(RegistrationRepoImpl)
        otp_repo = providers.Singleton(OtpRepoImpl)
        plan_repo = providers.Singleton(PlanRepoImpl)
        subscription_repo = providers.Singleton(SubscriptionRepoImpl)
        payment_history_repo = providers.Singleton(PaymentHistoryRepoImpl)

        # Serviços de negócio
        provisioning_service = providers.Singleton(
            AccountProvisioningService,
            account_repo=account_repo,
            subscription_repo=subscription_repo,
            plan_repo=plan_repo,
            payment_history_repo=payment_history_repo,
        )
        reconciliation_service = providers.Singleton(
            ReconciliationService,
            registration_repo=registration_repo,
            gateway=gateway,
            provisioner=provisioning_service,
            provisioning_lease=config.provisioning_lease,
        )
        subscription_lifecycle = providers.Singleton(
            SubscriptionLifecycle,
            subscription_repo=subscription_repo,
            gateway=gateway,
        )

        # Handlers do funil
        start_registration_handler = providers.Factory(
            StartRegistrationHandler,
            registration_repo=registration_repo,
            account_repo=account_repo,
            plan_repo=plan_repo,
            gateway=gateway,
            hash_service=hash_service,
            reconciliation=reconciliation_service,
            ttl=config.registration_ttl,
        )
        create_charge_handler = providers.Factory(
            CreateChargeHandler,
            registration_repo=registration_repo,
            plan_repo=plan_repo,
            gateway=gateway,
            reconciliation=reconciliation_service,
        )
        get_open_registration_handler = providers.Factory(
            GetOpenRegistrationHandler, registration_repo=registration_repo, reconciliation=reconciliation_service
        )
        register_trial_handler = providers.Factory(
            RegisterTrialHandler,
            account_repo=account_repo,
            subscription_repo=subscription_repo,
            plan_repo=plan_repo,
            otp_repo=otp_repo,
            phone_resolver=phone_resolver,
            hash_service=hash_service,
            trial_days=config.trial_days,
        )

        # Handlers de conciliação
        reconcile_webhook_handler = providers.Factory(ReconcileWebhookHandler, service=reconciliation_service)
        poll_payment_status_handler = providers.Factory(PollPaymentStatusHandler, service=reconciliation_service)
        expire_registrations_handler = providers.Factory(ExpireRegistrationsHandler, service=reconciliation_service)
        resume_provisioning_handler = providers.Factory(ResumeProvisioningHandler, service=reconciliation_service)

        # OTP
        issue_otp_handler = providers.Factory(
            IssueOtpHandler, otp_repo=otp_repo, notifier=otp_notifier, ttl=config.otp_ttl
        )
        verify_otp_handler = providers.Factory(VerifyOtpHandler, otp_repo=otp_repo)

        # Assinaturas
        cancel_subscription_handler = providers.Factory(CancelSubscriptionHandler, lifecycle=subscription_lifecycle)
        expire_subscriptions_handler = providers.Factory(ExpireSubscriptionsHandler, lifecycle=subscription_lifecycle)

        def init(self):
            bus = self.command_bus()

            # Funil
            bus.register(StartRegistrationCommand, self.start_registration_handler())
            bus.register(CreateChargeCommand, self.create_charge_handler())
            bus.register(RegisterTrialCommand, self.register_trial_handler())

            # Conciliação
            bus.register(ReconcileWebhookCommand, self.reconcile_webhook_handler())
            bus.register(PollPaymentStatusCommand, self.poll_payment_status_handler())
            bus.register(ExpireRegistrationsCommand, self.expire_registrations_handler())
            bus.register(ResumeProvisioningCommand, self.resume_provisioning_handler())

            # OTP
            bus.register(IssueOtpCommand, self.issue_otp_handler())
            bus.register(VerifyOtpCommand, self.verify_otp_handler())

            # Assinaturas
            bus.register(CancelSubscriptionCommand, self.cancel_subscription_handler())
            bus.register(ExpireSubscriptionsCommand, self.expire_subscriptions_handler())

            qb = self.query_bus()
            qb.register(GetOpenRegistrationQuery, self.get_open_registration_handler())

    # ------- INSTANCIAÇÃO E CONFIG -------
    container = Container()
    container.config.asaas.url.from_value(settings.ASAAS_API_URL)
    container.config.asaas.api_key.from_value(settings.ASAAS_API_KEY)
    container.config.asaas.timeout.from_value(settings.ASAAS_TIMEOUT)
    container.config.provisioning_lease.from_value(timedelta(seconds=settings.PROVISIONING_LEASE_SECONDS))
    container.config.registration_ttl.from_value(timedelta(hours=settings.REGISTRATION_TTL_HOURS))
    container.config.otp_ttl.from_value(timedelta(minutes=settings.OTP_TTL_MINUTES))
    container.config.trial_days.from_value(settings.TRIAL_DAYS)

    # Inicializa os buses com todos os handlers
    Container.init(container)
    structlog.get_logger(__name__).debug("subscription_billing.container_ready")
    return container
