"""
Observation lifecycle and registry.

An Observation wraps one operation: it is started before the work
begins, optionally made "current" for the duration of a scope, told
about errors, and stopped exactly once. The registry owns the handlers
that turn those lifecycle events into spans, metrics and log lines.

Usage:
    registry = ObservationRegistry()
    registry.add_handler(TracingObservationHandler(tracer))

    observation = registry.observation(context, convention)
    observation.start()
    try:
        with observation.open_scope():
            ...
    except Exception as e:
        observation.error(e)
        raise
    finally:
        observation.stop()
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Callable, Generator, TypeVar

from .context import ObservationContext

T = TypeVar("T")


class ObservationStateError(RuntimeError):
    """Raised on an invalid lifecycle transition (double start/stop)."""


class ObservationHandler:
    """Receives observation lifecycle events.

    Subclasses override only the hooks they need; the defaults do nothing.
    """

    def supports_context(self, context: ObservationContext) -> bool:
        return True

    def on_start(self, context: ObservationContext) -> None:
        """Called once, before the observed work begins."""

    def on_error(self, context: ObservationContext) -> None:
        """Called when the observed work fails; context.error is set."""

    def on_scope_opened(self, context: ObservationContext) -> None:
        """Called when the observation becomes current."""

    def on_scope_closed(self, context: ObservationContext) -> None:
        """Called when the observation stops being current."""

    def on_stop(self, context: ObservationContext) -> None:
        """Called once, after the key-values have their final values."""


class ObservationFilter:
    """Mutates a context right before handlers see on_stop."""

    def map(self, context: ObservationContext) -> ObservationContext:
        return context


class ObservationConvention:
    """Names and key-values for a family of contexts."""

    def supports_context(self, context: ObservationContext) -> bool:
        return True

    def get_name(self) -> str:
        raise NotImplementedError

    def get_contextual_name(self, context: ObservationContext) -> str | None:
        return None

    def get_low_cardinality_key_values(self, context: ObservationContext) -> dict[str, str]:
        return {}

    def get_high_cardinality_key_values(self, context: ObservationContext) -> dict[str, str]:
        return {}


class Observation:
    """One observed operation.

    Key-values are computed by the convention twice: at start (request
    side only, response keys hold their "none" value) and at stop, when
    the response is available.
    """

    def __init__(
        self,
        context: ObservationContext,
        convention: ObservationConvention,
        registry: "ObservationRegistry",
    ) -> None:
        self.context = context
        self.convention = convention
        self.registry = registry
        self._handlers = [h for h in registry.handlers if h.supports_context(context)]
        self._started = False
        self._stopped = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def _apply_convention(self) -> None:
        ctx = self.context
        ctx.name = self.convention.get_name()
        contextual_name = self.convention.get_contextual_name(ctx)
        if contextual_name:
            ctx.contextual_name = contextual_name
        ctx.low_cardinality_key_values.update(self.convention.get_low_cardinality_key_values(ctx))
        ctx.high_cardinality_key_values.update(self.convention.get_high_cardinality_key_values(ctx))

    def start(self) -> "Observation":
        if self._started:
            raise ObservationStateError(f"Observation {self.context.name!r} already started")
        self._started = True
        self.context.parent_observation = self.registry.current_observation
        self._apply_convention()
        for handler in self._handlers:
            handler.on_start(self.context)
        return self

    def error(self, exc: BaseException) -> "Observation":
        self.context.error = exc
        for handler in self._handlers:
            handler.on_error(self.context)
        return self

    def stop(self) -> None:
        if not self._started:
            raise ObservationStateError("Cannot stop an observation that was never started")
        if self._stopped:
            raise ObservationStateError(f"Observation {self.context.name!r} already stopped")
        self._stopped = True
        self._apply_convention()
        context = self.context
        for observation_filter in self.registry.filters:
            context = observation_filter.map(context)
        for handler in reversed(self._handlers):
            handler.on_stop(context)

    @contextmanager
    def open_scope(self) -> Generator["Observation", None, None]:
        """Make this observation current until the block exits."""
        token = self.registry._set_current(self)
        for handler in self._handlers:
            handler.on_scope_opened(self.context)
        try:
            yield self
        finally:
            for handler in reversed(self._handlers):
                handler.on_scope_closed(self.context)
            self.registry._reset_current(token)

    def observe(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run fn inside a started, scoped observation and stop it afterwards."""
        self.start()
        try:
            with self.open_scope():
                return fn(*args, **kwargs)
        except Exception as e:
            self.error(e)
            raise
        finally:
            self.stop()

    def __repr__(self) -> str:
        return f"<Observation(name={self.context.name!r}, started={self._started}, stopped={self._stopped})>"


class ObservationRegistry:
    """Holds handlers and filters, and tracks the current observation.

    The current observation lives in a ContextVar, so concurrent calls in
    different threads or tasks never see each other's observations.
    """

    def __init__(self) -> None:
        self._handlers: list[ObservationHandler] = []
        self._filters: list[ObservationFilter] = []
        self._current: ContextVar[Observation | None] = ContextVar(
            f"chatscope_current_observation_{id(self)}", default=None
        )

    def add_handler(self, handler: ObservationHandler) -> "ObservationRegistry":
        self._handlers.append(handler)
        return self

    def add_filter(self, observation_filter: ObservationFilter) -> "ObservationRegistry":
        self._filters.append(observation_filter)
        return self

    @property
    def handlers(self) -> tuple[ObservationHandler, ...]:
        return tuple(self._handlers)

    @property
    def filters(self) -> tuple[ObservationFilter, ...]:
        return tuple(self._filters)

    @property
    def is_noop(self) -> bool:
        return not self._handlers

    @property
    def current_observation(self) -> Observation | None:
        return self._current.get()

    def observation(
        self, context: ObservationContext, convention: ObservationConvention
    ) -> Observation:
        """Create a not-yet-started observation for context."""
        return Observation(context, convention, self)

    def _set_current(self, observation: Observation) -> Token:
        return self._current.set(observation)

    def _reset_current(self, token: Token) -> None:
        self._current.reset(token)
