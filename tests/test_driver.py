"""Tests for the driver: composing generator programs into Tasks."""

from __future__ import annotations

from typing import Any

import pytest

from conftest import ManualProducer, Recorder

from cotask import (
    ComposerNotRegisteredError,
    Composition,
    Done,
    DriverState,
    GeneratorProgram,
    Raised,
    Subscription,
    Suspended,
    TASK_COMPOSER,
    Task,
    compose,
    drive,
    resolve,
)


class TwoStep:
    """Program that awaits A then B and returns the sum."""

    def __init__(self) -> None:
        self.a = ManualProducer()
        self.b = ManualProducer()
        self.events: list[str] = []

    def task_b(self) -> Task[int]:
        self.events.append("B constructed")
        return Task(self.b)

    def program(self):
        first = yield Task(self.a)
        self.events.append(f"A delivered {first}")
        second = yield self.task_b()
        return first + second


def test_two_step_program_settles_to_sum(recorder: Recorder):
    two = TwoStep()
    produced = compose(two.program)
    recorder.read(produced)
    assert two.a.invocations == 1
    assert two.b.invocations == 0

    two.a.succeed(2)
    assert two.events == ["A delivered 2", "B constructed"]
    assert two.b.invocations == 1

    two.b.succeed(3)
    assert recorder.values == [5]
    assert recorder.errors == []


def test_dispose_while_suspended_on_second_task(recorder: Recorder):
    two = TwoStep()
    resumed = []

    def program():
        value = yield from two.program()
        resumed.append(value)
        return value

    produced = compose(program)
    subscription = recorder.read(produced)
    two.a.succeed(2)

    subscription.dispose()
    subscription.dispose()
    two.b.succeed(3)

    assert two.b.disposals == 1
    assert resumed == []
    assert recorder.calls == 0
    assert not produced.done()


def test_program_failing_before_first_suspension(recorder: Recorder):
    error = ValueError("bad input")

    def program():
        raise error
        yield  # pragma: no cover

    recorder.read(compose(program))

    assert recorder.errors == [error]
    assert recorder.values == []


def test_factory_raising_fails_instance(recorder: Recorder):
    def factory():
        raise KeyError("no program")

    recorder.read(compose(factory))

    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], KeyError)


def test_non_generator_factory_returns_value(recorder: Recorder):
    recorder.read(compose(lambda: 42))
    assert recorder.values == [42]


def test_plain_yielded_values_resume_immediately(recorder: Recorder):
    def program():
        a = yield 1
        b = yield "two"
        return (a, b)

    recorder.read(compose(program))
    assert recorder.values == [(1, "two")]


def test_program_can_catch_awaited_failure(manual: ManualProducer, recorder: Recorder):
    def program():
        try:
            yield Task(manual)
        except LookupError as exc:
            return f"handled {exc.args[0]}"
        return "not reached"

    recorder.read(compose(program))
    manual.fail(LookupError("missing"))

    assert recorder.values == ["handled missing"]


def test_uncaught_awaited_failure_fails_instance(manual: ManualProducer, recorder: Recorder):
    error = ConnectionError("reset")

    def program():
        yield Task(manual)
        return "unreachable"

    recorder.read(compose(program))
    manual.fail(error)

    assert recorder.errors == [error]


def test_non_exception_error_payload_fails_instance_unchanged(
    manual: ManualProducer, recorder: Recorder
):
    cleaned = []

    def program():
        try:
            yield Task(manual)
        finally:
            cleaned.append(True)

    recorder.read(compose(program))
    manual.fail("boom")

    assert recorder.errors == ["boom"]
    assert cleaned == [True]


def test_dispose_from_inside_program_stops_it(recorder: Recorder):
    first = ManualProducer()
    second = ManualProducer()
    cleaned = []
    holder: dict[str, Any] = {}

    def program():
        try:
            yield Task(first)
            holder["subscription"].dispose()
            yield Task(second)
            return "unreachable"
        finally:
            cleaned.append(True)

    holder["subscription"] = recorder.read(compose(program))
    first.succeed(1)

    assert second.invocations == 0
    assert cleaned == [True]
    assert recorder.calls == 0


def test_error_raised_after_resumption(recorder: Recorder):
    def program():
        value = yield resolve(0)
        return 1 / value

    recorder.read(compose(program))

    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], ZeroDivisionError)


def test_program_finally_runs_on_dispose(manual: ManualProducer):
    cleaned = []

    def program():
        try:
            yield Task(manual)
        finally:
            cleaned.append(True)

    subscription = compose(program).get(lambda value: None)
    subscription.dispose()

    assert cleaned == [True]
    assert manual.disposals == 1


def test_many_synchronous_awaits_do_not_overflow(recorder: Recorder):
    def program():
        total = 0
        for i in range(5000):
            total += yield resolve(i)
        return total

    recorder.read(compose(program))

    assert recorder.values == [sum(range(5000))]


def test_composed_task_is_memoized(manual: ManualProducer):
    starts = []

    def program():
        starts.append(True)
        value = yield Task(manual)
        return value

    produced = compose(program)
    Recorder().read(produced)
    manual.succeed("once")
    again = Recorder()
    again.read(produced)

    assert starts == [True]
    assert again.values == ["once"]


def test_each_production_starts_a_fresh_program(manual: ManualProducer):
    starts = []

    def program():
        starts.append(True)
        return (yield Task(manual))

    produced = compose(program)
    Recorder().read(produced).dispose()
    reader = Recorder()
    reader.read(produced)
    manual.succeed("second run")

    assert len(starts) == 2
    assert reader.values == ["second run"]


def test_compose_rejects_unknown_primitive():
    class Unregistered:
        pass

    with pytest.raises(ComposerNotRegisteredError):
        compose(lambda: 1, Unregistered)


def test_compose_requires_callable_factory():
    with pytest.raises(TypeError, match="factory must be callable"):
        compose(None)  # type: ignore[arg-type]


class CountdownProgram:
    """Hand-written StepProgram: awaits ``n`` values and returns them."""

    def __init__(self, n: int) -> None:
        self.remaining = n
        self.received: list[Any] = []
        self.closed = False

    def start(self):
        return self._next()

    def resume_with_value(self, value):
        self.received.append(value)
        return self._next()

    def resume_with_error(self, error):
        return Raised(error)

    def close(self):
        self.closed = True

    def _next(self):
        if self.remaining == 0:
            return Done(tuple(self.received))
        self.remaining -= 1
        return Suspended(resolve(self.remaining))


def test_drive_runs_explicit_state_machine(recorder: Recorder):
    recorder.read(drive(lambda: CountdownProgram(3), TASK_COMPOSER))
    assert recorder.values == [(2, 1, 0)]


def test_step_program_raising_is_routed_to_failure(recorder: Recorder):
    class Broken(CountdownProgram):
        def start(self):
            raise RuntimeError("state machine bug")

    recorder.read(drive(lambda: Broken(1)))

    assert len(recorder.errors) == 1
    assert str(recorder.errors[0]) == "state machine bug"


class TestComposition:
    def test_states_through_lifecycle(self, manual: ManualProducer):
        program = CountdownProgram(0)
        program._next = lambda: Suspended(Task(manual))  # type: ignore[method-assign]
        delivered = Recorder()
        composition = Composition(program, TASK_COMPOSER, delivered.on_value, delivered.on_error)

        subscription = composition.run()
        assert composition.state is DriverState.SUSPENDED

        subscription.dispose()
        assert composition.state is DriverState.DISPOSED
        assert program.closed

        manual.succeed("ignored")
        assert delivered.calls == 0

    def test_dispose_during_step_stays_disposed(self, manual: ManualProducer):
        later = ManualProducer()
        holder: dict[str, Any] = {}

        def program():
            yield Task(manual)
            holder["composition"].dispose()
            yield Task(later)

        delivered = Recorder()
        composition = Composition(
            GeneratorProgram(program), TASK_COMPOSER, delivered.on_value, delivered.on_error
        )
        holder["composition"] = composition
        composition.run()
        manual.succeed(1)

        assert composition.state is DriverState.DISPOSED
        assert later.invocations == 0
        assert delivered.calls == 0

    def test_dispose_before_return_suppresses_result(self, manual: ManualProducer):
        holder: dict[str, Any] = {}

        def program():
            value = yield Task(manual)
            holder["composition"].dispose()
            return value

        delivered = Recorder()
        composition = Composition(
            GeneratorProgram(program), TASK_COMPOSER, delivered.on_value, delivered.on_error
        )
        holder["composition"] = composition
        composition.run()
        manual.succeed(1)

        assert composition.state is DriverState.DISPOSED
        assert delivered.calls == 0

    def test_settled_composition_ignores_dispose(self):
        delivered = Recorder()
        composition = Composition(
            CountdownProgram(1), TASK_COMPOSER, delivered.on_value, delivered.on_error
        )

        subscription = composition.run()
        subscription.dispose()

        assert composition.state is DriverState.SETTLED
        assert delivered.values == [(0,)]

    def test_subscribe_failure_is_thrown_into_program(self, recorder: Recorder):
        from cotask import ComposerEntry

        def broken_subscribe(instance, on_value, on_error):
            raise RuntimeError("cannot observe")

        entry = ComposerEntry(
            construct=Task.construct,
            resolve=resolve,
            sequence=TASK_COMPOSER.sequence,
            subscribe=broken_subscribe,
        )

        def program():
            try:
                yield 1
            except RuntimeError as exc:
                return f"caught {exc}"

        recorder.read(compose(program, entry))

        assert recorder.values == ["caught cannot observe"]

    def test_late_delivery_from_ignoring_producer_is_dropped(self, recorder: Recorder):
        deliveries = []

        def stubborn(deliver_value, deliver_error):
            deliveries.append(deliver_value)
            return Subscription.empty()

        def program():
            value = yield Task(stubborn, shared=False)
            return value

        subscription = recorder.read(compose(program))
        subscription.dispose()
        deliveries[0]("after dispose")

        assert recorder.calls == 0
