import logging
import sys
import time
from typing import Any, Callable

# FastMCP 2.0 import
from fastmcp import FastMCP

from .base_session_store import SessionStore
from .bot_filter import BotClassifier
from .config import (
    ConfigProvider,
    EnvConfigProvider,
    create_store,
    load_batch_limit,
    load_store_settings,
    load_sweep_settings,
)
from .errors import SweepCancelledError
from .storage_types import SweepResult
from .sweep_engine import run_cleanup as run_sweep
from .system_utils import log_system_status
from .utils.report_utils import summarize_sweep_result

logger = logging.getLogger(__name__)
# Ensure logs are visible in the FastMCP subprocess even if no handlers configured
if not logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(logging.INFO)
    _formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    _handler.setFormatter(_formatter)
    logger.addHandler(_handler)
logger.setLevel(logging.INFO)

# Create FastMCP instance
mcp = FastMCP("Bot Session Cleaner 🧹")


class CleanupService:
    """Runs cleanup sweeps on demand against the configured session store."""

    def __init__(
        self,
        config_provider: ConfigProvider | None = None,
        store_factory: Callable[[], SessionStore] | None = None,
        batch_limit: int | None = None,
    ):
        self.config_provider = config_provider or EnvConfigProvider()
        self._store_factory = store_factory or (
            lambda: create_store(load_store_settings())
        )
        self.batch_limit = batch_limit if batch_limit is not None else load_batch_limit()

    def run_cleanup(self, max_seconds: float | None = None) -> SweepResult:
        """Run one sweep; stop fetching new pages after max_seconds."""
        deadline = time.monotonic() + max_seconds if max_seconds is not None else None
        with self._store_factory() as store:
            log_system_status(store)
            return run_sweep(
                self.config_provider,
                store,
                batch_limit=self.batch_limit,
                deadline=deadline,
            )

    def cleanup_report(self, max_seconds: float | None = None) -> str:
        """Run one sweep and render its counters as text."""
        try:
            result = self.run_cleanup(max_seconds)
        except SweepCancelledError as exc:
            logger.warning("Cleanup stopped early: %s", exc)
            return f"{exc}\n{summarize_sweep_result(exc.result)}"
        return summarize_sweep_result(result)

    def count_sessions(self) -> int:
        with self._store_factory() as store:
            return store.count()

    def check_user_agent(self, user_agent: str) -> bool:
        settings = load_sweep_settings(self.config_provider, batch_limit=self.batch_limit)
        return BotClassifier.from_lines(settings.filter_lines).is_bot(user_agent)

    def describe_settings(self) -> dict[str, Any]:
        settings = load_sweep_settings(self.config_provider, batch_limit=self.batch_limit)
        return {
            "filter_fragments": list(settings.filter_lines),
            "session_lifetime_seconds": settings.session_lifetime_seconds,
            "bots_cleanup_delta": settings.bots_cleanup_delta,
            "batch_limit": settings.batch_limit,
        }


# Global cleanup service instance
cleanup_service = CleanupService()


# === TOOLS ===
@mcp.tool
def run_cleanup(max_seconds: float | None = None) -> str:
    """Remove bot sessions and expired human sessions from the session store.

    Args:
        max_seconds: Optional time budget; the sweep stops before the next page once exceeded

    Returns:
        Report with removal counters and the most common human user agents
    """
    return cleanup_service.cleanup_report(max_seconds)


@mcp.tool
def count_sessions() -> int:
    """Return the number of sessions currently stored."""
    return cleanup_service.count_sessions()


@mcp.tool
def check_user_agent(user_agent: str) -> str:
    """Tell whether a user-agent string matches the configured bot filter.

    Args:
        user_agent: The HTTP User-Agent value to classify

    Returns:
        "bot" or "human"
    """
    return "bot" if cleanup_service.check_user_agent(user_agent) else "human"


# === RESOURCES ===
@mcp.resource("botsess://settings")
def get_settings() -> dict[str, Any]:
    """Resolved cleanup settings (filter fragments and thresholds)."""
    return cleanup_service.describe_settings()


# === MAIN ENTRY POINT ===
def main():
    """Main entry point for the FastMCP 2.0 server."""
    logger.info("Starting FastMCP 2.0 bot session cleanup server")
    mcp.run()


if __name__ == "__main__":
    main()
