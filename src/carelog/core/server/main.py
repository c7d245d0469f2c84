"""CareLog server entry point: ``python -m carelog.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from carelog.core.config.settings import get_settings
from carelog.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the CareLog MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.carelog_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.carelog_allow_insecure_bind and not _is_loopback_host(settings.carelog_host):
        raise RuntimeError(
            "Refusing to bind CareLog server to a non-loopback host without an auth layer. "
            "Set CARELOG_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting CareLog Health server on %s:%d",
        settings.carelog_host,
        settings.carelog_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.carelog_host,
        port=settings.carelog_port,
    )


if __name__ == "__main__":
    run()
