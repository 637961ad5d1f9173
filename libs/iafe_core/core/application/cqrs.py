from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

import structlog

from iafe_core.core.domain.events.events import DomainEvent
from iafe_core.core.domain.exceptions import ProvisioningError
from iafe_core.core.domain.services.event_dispatcher import EventDispatcher

# ───────────────────────────────────────────────
# CQRS com log de performance
# ───────────────────────────────────────────────

C = TypeVar("C")  # Command type
Q = TypeVar("Q")  # Query type
R = TypeVar("R")  # Result type

logger = structlog.get_logger(__name__)


# ───────────────────────────────────────────────
# DTOs
# ───────────────────────────────────────────────
@dataclass(frozen=True)
class CommandDTO:
    """Base para todos comandos de escrita."""


@dataclass(frozen=True)
class QueryDTO:
    """Base para consultas de leitura."""


# ───────────────────────────────────────────────
# Handlers Protocols
# ───────────────────────────────────────────────
class CommandHandler(Protocol, Generic[C]):
    def handle(self, command: C) -> Any:
        """Processa um comando e aplica mudanças de estado."""
        ...


class QueryHandler(Protocol, Generic[Q, R]):
    def handle(self, query: Q) -> R:
        """Processa uma consulta e retorna um resultado."""
        ...


# ───────────────────────────────────────────────
# Buses
# ───────────────────────────────────────────────
class _Bus:
    kind = "message"

    def __init__(self) -> None:
        self._handlers: dict[type, Any] = {}

    def register(self, message_type: type, handler: Any) -> None:
        self._handlers[message_type] = handler
        logger.debug(f"{self.kind}.handler_registered", message=message_type.__name__)

    def dispatch(self, message: Any) -> Any:
        name = type(message).__name__
        handler = self._handlers.get(type(message))
        if handler is None:
            raise ValueError(f"Nenhum handler para {self.kind}: {name}")

        start = time.perf_counter()
        try:
            result = handler.handle(message)
        except ProvisioningError as exc:
            # erros de domínio sobem para a view; aqui só registramos o código
            logger.info(
                f"{self.kind}.rejected",
                message=name,
                code=exc.code,
                duration=f"{time.perf_counter() - start:.3f}s",
            )
            raise
        logger.info(f"{self.kind}.executed", message=name, duration=f"{time.perf_counter() - start:.3f}s")
        return result


class CommandBus(_Bus):
    kind = "command"


class QueryBus(_Bus):
    kind = "query"


class CommandBusImpl(CommandBus):
    """
    CommandBus que publica os eventos devolvidos pelo handler.

    O handler pode retornar um DomainEvent, um iterável de eventos ou um
    resultado com atributo `events`.
    """

    def __init__(self, dispatcher: EventDispatcher) -> None:
        super().__init__()
        self.dispatcher = dispatcher

    def dispatch(self, command: Any) -> Any:
        result = super().dispatch(command)
        for evt in self._collect_events(result):
            self.dispatcher.dispatch(evt)
        return result

    @staticmethod
    def _collect_events(result: Any) -> Iterable[DomainEvent]:
        if isinstance(result, DomainEvent):
            return [result]
        events = getattr(result, "events", None)
        if events:
            return [e for e in events if isinstance(e, DomainEvent)]
        if isinstance(result, list | tuple):
            return [e for e in result if isinstance(e, DomainEvent)]
        return []


class QueryBusImpl(QueryBus):
    pass
