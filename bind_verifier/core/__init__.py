# Core - configuration and logging shared by every command

from bind_verifier.core.logging import JsonFormatter, configure_logging

__all__ = [
    "JsonFormatter",
    "configure_logging",
]
