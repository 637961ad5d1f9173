from dependency_injector import containers, providers

container = None


def setup_di_container_from_settings(settings):
    """Inicializa o DI container do núcleo após o Django carregar os settings."""
    global container  # noqa: PLW0603
    if container is not None:
        return container

    import structlog

    from iafe_core.adapters.repositories.account_repo_impl import AccountRepoImpl
    from iafe_core.adapters.security.hash_service import HashService
    from iafe_core.core.application.cqrs import CommandBusImpl, QueryBusImpl
    from iafe_core.core.application.handlers.account_handlers import ResolveAccountByPhoneHandler
    from iafe_core.core.application.queries.account_queries import ResolveAccountByPhoneQuery
    from iafe_core.core.application.services.phone_identity_resolver import PhoneIdentityResolver
    from iafe_core.core.domain.services.event_dispatcher import EventDispatcher

    class Container(containers.DeclarativeContainer):
        config = providers.Configuration()

        logger = providers.Singleton(structlog.get_logger)
        event_dispatcher = providers.Singleton(EventDispatcher)

        # CQRS
        command_bus = providers.Singleton(CommandBusImpl, dispatcher=event_dispatcher)
        query_bus = providers.Singleton(QueryBusImpl)

        # Identidade
        account_repo = providers.Singleton(AccountRepoImpl)
        hash_service = providers.Singleton(HashService)
        phone_resolver = providers.Singleton(
            PhoneIdentityResolver,
            lookup=account_repo.provided.lookup_by_phone,
        )

        resolve_account_by_phone_handler = providers.Factory(
            ResolveAccountByPhoneHandler,
            resolver=phone_resolver,
            account_repo=account_repo,
        )

    container = Container()
    container.config.from_dict({"debug": getattr(settings, "DEBUG", False)})

    container.query_bus().register(ResolveAccountByPhoneQuery, container.resolve_account_by_phone_handler())

    structlog.get_logger(__name__).debug("core.container_ready")
    return container
