"""Agent node entrypoint: bonding gate, catch-up sync, then generate and commit."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from contextlib import suppress
from typing import Callable, Optional

from agent_core.bonding import ensure_bonded
from agent_core.commit_loop import GenerationCommitLoop
from agent_core.errors import AgentError, BondingDeclined, ConfigError
from agent_core.interfaces import GenerationEngine, LedgerClient
from agent_core.storage import SubmissionStore, open_store
from agent_core.synchronizer import CatchUpSynchronizer

from .config import DEFAULT_CONFIG_PATH, DEFAULT_PROFILE_PATH, AgentConfig, AgentProfile, load_config, load_profile
from .confirm import confirm
from .engine import LlamaCppEngine
from .ledger_client import Web3LedgerClient
from .metrics_http import metrics_server

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BONDING_DECLINED = 1
EXIT_STARTUP_FAILURE = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ledger-following generation agent")
    parser.add_argument(
        "command",
        nargs="?",
        choices=("run", "status"),
        default="run",
        help="run the agent (default) or print local and ledger state",
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("AGENT_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to the JSON connection/storage configuration",
    )
    parser.add_argument(
        "--agent",
        default=os.environ.get("AGENT_PROFILE", DEFAULT_PROFILE_PATH),
        help="Path to the JSON agent profile (system prompt)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("AGENT_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


async def run_agent(
    config: AgentConfig,
    profile: AgentProfile,
    store: SubmissionStore,
    ledger: LedgerClient,
    engine_factory: Callable[[], GenerationEngine],
    *,
    max_cycles: Optional[int] = None,
) -> None:
    """Start the synchronizer, wait for the first catch-up, then generate forever."""

    backoff = config.backoff.policy()
    synchronizer = CatchUpSynchronizer(store, ledger, backoff=backoff)
    synchronizer.start()

    metrics_task: Optional[asyncio.Task] = None
    if config.metrics_port is not None:
        metrics_task = asyncio.create_task(
            metrics_server(
                port=config.metrics_port,
                status=lambda: {"cursor": store.cursor(), "caught_up": synchronizer.caught_up.is_set()},
            )
        )

    try:
        await synchronizer.wait_caught_up()
        LOGGER.info("Latest context: %d", store.cursor())
        loop = asyncio.get_running_loop()
        engine = await loop.run_in_executor(None, engine_factory)
        commit_loop = GenerationCommitLoop(
            store,
            ledger,
            engine,
            system_prompt=profile.system,
            turn_template=profile.turn_template,
            window_size=config.window_size,
            seed_offset=config.seed_offset,
            legacy_label=config.legacy_index_label,
            backoff=backoff,
        )
        await commit_loop.run_forever(max_cycles=max_cycles)
    finally:
        synchronizer.stop()
        if metrics_task is not None:
            metrics_task.cancel()
            with suppress(asyncio.CancelledError):
                await metrics_task


def _log_failure(exc: AgentError) -> None:
    LOGGER.error("%s%s", exc, f": {exc.detail}" if exc.detail else "")


def print_status(config: AgentConfig, store: SubmissionStore, ledger: LedgerClient) -> None:
    cursor = store.cursor()
    window = list(store.records(cursor - (config.window_size - 1), cursor))
    print(f"Wallet address: {ledger.address}")
    print(f"Bonded balance: {ledger.format_amount(ledger.read_balance())}")
    print(f"Submission threshold: {ledger.format_amount(ledger.read_threshold())}")
    print(f"Local cursor: {cursor}")
    print(f"Records in window: {[index for index, _ in window]}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        profile = load_profile(args.agent)
    except ConfigError as exc:
        _log_failure(exc)
        return EXIT_STARTUP_FAILURE

    try:
        ledger = Web3LedgerClient.from_config(config)
        store = open_store(config.db_path, sync_writes=config.sync_writes)
    except AgentError as exc:
        _log_failure(exc)
        return EXIT_STARTUP_FAILURE

    try:
        LOGGER.info("Using wallet address: %s", ledger.address)
        if args.command == "status":
            print_status(config, store, ledger)
            return EXIT_OK

        ensure_bonded(ledger, confirm)
        asyncio.run(
            run_agent(config, profile, store, ledger, lambda: LlamaCppEngine.from_config(config))
        )
    except BondingDeclined as exc:
        LOGGER.error("%s", exc)
        return EXIT_BONDING_DECLINED
    except AgentError as exc:
        _log_failure(exc)
        return EXIT_STARTUP_FAILURE
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, shutting down")
    finally:
        store.close()
    return EXIT_OK


__all__ = ["main", "run_agent"]
