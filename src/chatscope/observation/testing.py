"""
In-memory observation registry with fluent assertions, for tests.

Usage:
    registry = TestObservationRegistry()
    client = ChatClient(config, observation_registry=registry)
    client.call(prompt)

    (assert_that(registry)
        .does_not_have_any_remaining_current_observation()
        .has_observation_with_name_equal_to("gen_ai.client.operation")
        .that()
        .has_low_cardinality_key_value("gen_ai.operation.name", "chat")
        .has_been_started()
        .has_been_stopped())
"""

import threading
from dataclasses import dataclass

from .context import ObservationContext
from .observation import ObservationHandler, ObservationRegistry


@dataclass
class RecordedObservation:
    """A context plus the lifecycle events seen for it."""

    context: ObservationContext
    started: bool = False
    stopped: bool = False
    stop_count: int = 0


class _RecordingHandler(ObservationHandler):
    def __init__(self, registry: "TestObservationRegistry") -> None:
        self._registry = registry

    def on_start(self, context: ObservationContext) -> None:
        self._registry._record(context).started = True

    def on_stop(self, context: ObservationContext) -> None:
        record = self._registry._record(context)
        record.stopped = True
        record.stop_count += 1


class TestObservationRegistry(ObservationRegistry):
    """Registry that remembers every observation it has seen."""

    __test__ = False

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._records: list[RecordedObservation] = []
        self.add_handler(_RecordingHandler(self))

    def _record(self, context: ObservationContext) -> RecordedObservation:
        with self._lock:
            for record in self._records:
                if record.context is context:
                    return record
            record = RecordedObservation(context=context)
            self._records.append(record)
            return record

    @property
    def records(self) -> list[RecordedObservation]:
        with self._lock:
            return list(self._records)

    @property
    def contexts(self) -> list[ObservationContext]:
        return [r.context for r in self.records]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class TestObservationRegistryAssert:
    """Assertions over everything a TestObservationRegistry recorded."""

    __test__ = False

    def __init__(self, registry: TestObservationRegistry) -> None:
        self.registry = registry

    def does_not_have_any_remaining_current_observation(self) -> "TestObservationRegistryAssert":
        current = self.registry.current_observation
        if current is not None:
            raise AssertionError(f"Expected no current observation, found {current!r}")
        return self

    def has_number_of_observations_equal_to(self, expected: int) -> "TestObservationRegistryAssert":
        actual = len(self.registry.records)
        if actual != expected:
            raise AssertionError(f"Expected {expected} observations, found {actual}")
        return self

    def has_observation_with_name_equal_to(self, name: str) -> "ObservationContextAssert":
        for record in self.registry.records:
            if record.context.name == name:
                return ObservationContextAssert(record, self)
        names = [r.context.name for r in self.registry.records]
        raise AssertionError(f"No observation named {name!r}; recorded: {names}")

    def has_any_observation(self) -> "TestObservationRegistryAssert":
        if not self.registry.records:
            raise AssertionError("Expected at least one observation, found none")
        return self


class ObservationContextAssert:
    """Assertions over a single recorded observation."""

    def __init__(self, record: RecordedObservation, parent: TestObservationRegistryAssert) -> None:
        self.record = record
        self.context = record.context
        self._parent = parent

    def that(self) -> "ObservationContextAssert":
        return self

    def back_to_registry(self) -> TestObservationRegistryAssert:
        return self._parent

    def has_contextual_name_equal_to(self, expected: str) -> "ObservationContextAssert":
        if self.context.contextual_name != expected:
            raise AssertionError(
                f"Expected contextual name {expected!r}, found {self.context.contextual_name!r}"
            )
        return self

    def _check_key_value(self, kind: str, values: dict[str, str], key: str, expected: str) -> None:
        if key not in values:
            raise AssertionError(f"Missing {kind} key {key!r}; present: {sorted(values)}")
        if values[key] != expected:
            raise AssertionError(f"Expected {kind} {key}={expected!r}, found {values[key]!r}")

    def has_low_cardinality_key_value(self, key: str, expected: str) -> "ObservationContextAssert":
        self._check_key_value("low cardinality", self.context.low_cardinality_key_values, key, expected)
        return self

    def has_high_cardinality_key_value(self, key: str, expected: str) -> "ObservationContextAssert":
        self._check_key_value("high cardinality", self.context.high_cardinality_key_values, key, expected)
        return self

    def does_not_have_high_cardinality_key(self, key: str) -> "ObservationContextAssert":
        if key in self.context.high_cardinality_key_values:
            raise AssertionError(f"Unexpected high cardinality key {key!r}")
        return self

    def has_been_started(self) -> "ObservationContextAssert":
        if not self.record.started:
            raise AssertionError("Observation was never started")
        return self

    def has_been_stopped(self) -> "ObservationContextAssert":
        if not self.record.stopped:
            raise AssertionError("Observation was never stopped")
        if self.record.stop_count != 1:
            raise AssertionError(f"Observation stopped {self.record.stop_count} times")
        return self

    def has_error(self, error_type: type[BaseException] | None = None) -> "ObservationContextAssert":
        if self.context.error is None:
            raise AssertionError("Expected the observation to record an error")
        if error_type is not None and not isinstance(self.context.error, error_type):
            raise AssertionError(
                f"Expected error of type {error_type.__name__}, found {type(self.context.error).__name__}"
            )
        return self

    def does_not_have_error(self) -> "ObservationContextAssert":
        if self.context.error is not None:
            raise AssertionError(f"Unexpected error recorded: {self.context.error!r}")
        return self


def assert_that(registry: TestObservationRegistry) -> TestObservationRegistryAssert:
    return TestObservationRegistryAssert(registry)
