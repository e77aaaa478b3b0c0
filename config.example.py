# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets such as TASKDAPP_PRIVATE_KEY. Keep them in .env (local, gitignored).

Leaving TASKDAPP_RPC_URL empty runs the client against the in-memory offline ledger.
"""

ENV_VARS = {
    # App / logging
    "TASKDAPP_APP_NAME": "App display name (default: taskdapp).",
    "TASKDAPP_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKDAPP_DATA_DIR": "Local data directory for logs (default: .local/taskdapp).",
    # Front-end
    "TASKDAPP_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "TASKDAPP_AUTO_CONNECT": "Connect the wallet on startup and after a reload (default: true).",
    # Network / wallet
    "TASKDAPP_RPC_URL": "JSON-RPC endpoint (falls back to WEB3_HTTP_PROVIDER_URI; empty => offline).",
    "TASKDAPP_EXPECTED_CHAIN_ID": "Chain id the contract lives on (default: 1, hex accepted).",
    "TASKDAPP_PRIVATE_KEY": "Key used to sign transactions locally (empty => node's unlocked accounts).",
    "TASKDAPP_POLL_INTERVAL_SECONDS": "How often the wallet is polled for account/chain changes (default: 2).",
    # Contract
    "TASKDAPP_CONTRACT_ADDRESS": "Task ledger contract address.",
    "TASKDAPP_ABI_PATH": "Contract ABI JSON (default: bundled chain/abi.json).",
    "TASKDAPP_ADD_GAS_LIMIT": "Gas limit for addTask (default: 200000).",
    "TASKDAPP_DELETE_GAS_LIMIT": "Gas limit for deleteTask (default: 100000).",
    "TASKDAPP_RECEIPT_TIMEOUT_SECONDS": "Max wait for a transaction receipt (default: 120).",
}
