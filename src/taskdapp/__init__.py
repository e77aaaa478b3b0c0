"""Wallet-session and task-synchronization client for the on-chain task ledger."""

__version__ = "0.1.0"
