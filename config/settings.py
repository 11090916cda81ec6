import os
from dotenv import load_dotenv

# Load Environment Variables from project root .env
env_path = os.path.join(os.path.dirname(__file__), "../.env")
load_dotenv(env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # GUARDIAN RECOVERY CLIENT CONFIGURATION
    # ═══════════════════════════════════════════════════════════════════

    # --- Console ---
    SILENT_MODE = _env_bool("SILENT_MODE", "false")

    # --- Ledger node ---
    NODE_URL = os.getenv("CASPER_NODE_URL", "http://localhost:7777")
    CHAIN_NAME = os.getenv("CASPER_CHAIN_NAME", "casper-test")
    RPC_TIMEOUT_SEC = float(os.getenv("RPC_TIMEOUT_SEC", "10.0"))

    # --- Recovery registry ---
    # Stored contract targeted by every action except registration
    RECOVERY_REGISTRY_HASH = os.getenv("RECOVERY_REGISTRY_HASH", "")
    # Session module run once to bootstrap an owner's guardian records
    RECOVERY_REGISTRY_WASM = os.getenv(
        "RECOVERY_REGISTRY_WASM",
        os.path.abspath(
            os.path.join(os.path.dirname(__file__), "../wasm/recovery_registry.wasm")
        ),
    )

    # --- Deploys ---
    DEPLOY_PAYMENT_AMOUNT = int(os.getenv("DEPLOY_PAYMENT_AMOUNT", "5000000000"))  # motes
    DEPLOY_TTL_MS = int(os.getenv("DEPLOY_TTL_MS", str(30 * 60 * 1000)))
    DEPLOY_GAS_PRICE = int(os.getenv("DEPLOY_GAS_PRICE", "1"))

    # --- Confirmation polling ---
    CONFIRMATION_TIMEOUT_MS = int(os.getenv("CONFIRMATION_TIMEOUT_MS", "60000"))
    POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "2000"))

    # Paths
    LOG_DIR = os.getenv(
        "LOG_DIR",
        os.path.abspath(os.path.join(os.path.dirname(__file__), "../logs")),
    )
