from collections.abc import Callable

import structlog

from iafe_core.core.domain.events.events import DomainEvent

logger = structlog.get_logger(__name__)


class EventDispatcher:
    """
    Dispatcher síncrono de eventos de domínio.

    Falha de um assinante é logada e não interrompe os demais: eventos são
    efeitos colaterais de uma transição já persistida.
    """

    def __init__(self) -> None:
        self._subs: dict[type[DomainEvent], list[Callable[[DomainEvent], None]]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: Callable[[DomainEvent], None]) -> None:
        self._subs.setdefault(event_type, []).append(handler)
        logger.debug(
            "event.subscribed",
            event_type=event_type.__name__,
            handler_name=getattr(handler, "__name__", handler.__class__.__name__),
        )

    def dispatch(self, event: DomainEvent) -> None:
        handlers = [
            h
            for event_type, subs in self._subs.items()
            if isinstance(event, event_type)
            for h in subs
        ]
        logger.info("event.dispatch", event_name=type(event).__name__, listeners=len(handlers))
        for h in handlers:
            try:
                h(event)
            except Exception as e:
                logger.error(
                    "event.handler_error",
                    event_name=type(event).__name__,
                    handler_name=getattr(h, "__name__", h.__class__.__name__),
                    error=str(e),
                    exc_info=True,
                )
