import asyncio
import logging

from agent_core.backoff import BackoffPolicy
from agent_core.commit_loop import CycleOutcome, GenerationCommitLoop
from agent_core.errors import SubmissionFailed
from conftest import FakeEngine, FakeLedger

FAST = BackoffPolicy(base_seconds=0.01, max_seconds=0.01)


def _loop(store, ledger, engine, **kwargs):
    return GenerationCommitLoop(store, ledger, engine, system_prompt="You are Ada.", backoff=FAST, **kwargs)


def test_commits_candidate_when_cursor_unchanged(fill_store):
    store = fill_store(7)
    ledger = FakeLedger()
    engine = FakeEngine(reply="hello")

    outcome = asyncio.run(_loop(store, ledger, engine).cycle())

    assert outcome is CycleOutcome.COMMITTED
    assert ledger.submitted == [engine.tokenize("hello")]
    window, seed = engine.calls[0]
    assert seed == 7 + 41
    assert window.cursor == 7
    assert window.indices == (2, 3, 4, 5, 6, 7)


def test_discards_candidate_when_cursor_moves_during_generation(fill_store):
    store = fill_store(7)
    ledger = FakeLedger()

    def other_agent_appends(window, seed):
        store.put_record(8, [ord("z")])
        store.set_cursor(8)

    engine = FakeEngine(on_generate=other_agent_appends)
    outcome = asyncio.run(_loop(store, ledger, engine).cycle())

    assert outcome is CycleOutcome.STALE
    assert ledger.submitted == []


def test_next_cycle_rebuilds_from_new_cursor(fill_store):
    store = fill_store(7)
    ledger = FakeLedger()
    moved = []

    def move_once(window, seed):
        if not moved:
            moved.append(True)
            store.put_record(8, [ord("z")])
            store.set_cursor(8)

    engine = FakeEngine(on_generate=move_once)
    asyncio.run(_loop(store, ledger, engine).run_forever(max_cycles=2))

    assert [window.cursor for window, _ in engine.calls] == [7, 8]
    assert [seed for _, seed in engine.calls] == [48, 49]
    assert len(ledger.submitted) == 1


def test_submission_failure_ends_cycle_without_retry(fill_store, caplog):
    store = fill_store(2)
    ledger = FakeLedger()
    ledger.submit_error = SubmissionFailed("propose transaction reverted", tx_hash="0xabc")
    engine = FakeEngine()

    with caplog.at_level("WARNING", logger="agent_core.commit_loop"):
        outcome = asyncio.run(_loop(store, ledger, engine).cycle())

    assert outcome is CycleOutcome.FAILED
    assert len(engine.calls) == 1
    failures = [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert len(failures) == 1
    assert failures[0].getMessage() == "submit_entry failed"
    assert failures[0].cursor == 2


def test_loop_survives_failures(fill_store):
    store = fill_store(2)
    ledger = FakeLedger()
    ledger.submit_error = SubmissionFailed("rejected")
    engine = FakeEngine()

    asyncio.run(_loop(store, ledger, engine).run_forever(max_cycles=3))

    assert len(engine.calls) == 3
    assert ledger.submitted == []


def test_engine_errors_are_logged_and_loop_continues(fill_store, caplog):
    store = fill_store(1)
    ledger = FakeLedger()
    attempts = []

    def explode_once(window, seed):
        attempts.append(seed)
        if len(attempts) == 1:
            raise RuntimeError("model crashed")

    engine = FakeEngine(on_generate=explode_once)
    with caplog.at_level("ERROR"):
        asyncio.run(_loop(store, ledger, engine).run_forever(max_cycles=2))

    assert len(attempts) == 2
    assert len(ledger.submitted) == 1
    assert "Generation cycle failed" in caplog.text


def test_legacy_label_and_custom_seed_offset(fill_store):
    store = fill_store(7)
    engine = FakeEngine()
    loop = _loop(store, FakeLedger(), engine, seed_offset=0, legacy_label=True, turn_template="n{index}")

    asyncio.run(loop.cycle())

    window, seed = engine.calls[0]
    assert seed == 7
    assert window.pending.content == "n71"
