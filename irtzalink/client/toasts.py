"""
User-visible notices ("toasts") raised by client components
"""
import logging

logger = logging.getLogger(__name__)


class Toaster:
    """Default sink: writes notices to the log.

    UIs subclass this and render the message instead.
    """

    def success(self, message: str) -> None:
        logger.info(f"[toast:success] {message}")

    def error(self, message: str) -> None:
        logger.warning(f"[toast:error] {message}")

    def info(self, message: str) -> None:
        logger.info(f"[toast:info] {message}")
