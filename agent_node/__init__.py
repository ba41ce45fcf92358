"""Process-level wiring for the agent: configuration, ledger and model clients, entrypoint."""
