"""CareLog Health MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from fastmcp import FastMCP

from carelog.core.audit.logger import AuditLogger
from carelog.core.config.settings import get_settings
from carelog.core.storage.database import DatabaseError, HealthDatabase
from carelog.core.storage.encryption import EncryptionError, FieldEncryptor
from carelog.core.storage.repository import HealthRepository
from carelog.domains.health.tools.classification_tools import register_classification_tools

logger = logging.getLogger(__name__)


def create_app(
    *,
    repository_override: HealthRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
    clock_override: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Create and configure the CareLog Health MCP server.

    1. Creates the FastMCP server instance
    2. Initializes the encrypted storage layer (health data bank), if configured
    3. Registers the stateless classification tool
    4. Registers vitals, timeline, adherence, audit and data management
       tools when storage is available
    """
    settings = get_settings()
    tz = settings.tzinfo

    server = FastMCP(
        "CareLog Health",
        instructions=(
            "Personal health-record tracker. Log vital signs, review zone-change "
            "alerts and monthly summaries on your health timeline, and track "
            "medication adherence streaks. Zones are fixed-threshold heuristics, "
            "not medical advice."
        ),
    )

    # --- Initialize encrypted storage (health data bank) ---
    repository: HealthRepository | None = None
    audit_logger: AuditLogger | None = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(
                settings.encryption_key, previous_keys=settings.previous_keys()
            )
            health_db = HealthDatabase(settings.db_path)
            health_db.initialize()
            repository = HealthRepository(
                health_db, encryptor, user_id=settings.default_user_id
            )
            if audit_logger is None:
                audit_logger = AuditLogger(health_db)
            logger.info(
                "Health data bank initialized: %s (schema v%d)",
                settings.db_path,
                health_db.get_schema_version(),
            )
        except (EncryptionError, DatabaseError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence; data will not be stored")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; running without persistence. "
            "Set ENCRYPTION_KEY to enable the health data bank."
        )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "CareLog Health",
            "version": "0.1.0",
            "timezone": settings.timezone,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["observations_stored"] = repository.count_observations()
        return status

    register_classification_tools(server)

    if repository is not None:
        from carelog.domains.health.tools.adherence_tools import register_adherence_tools
        from carelog.domains.health.tools.data_management_tools import (
            register_data_management_tools,
        )
        from carelog.domains.health.tools.timeline_tools import register_timeline_tools
        from carelog.domains.health.tools.vitals_tools import register_vitals_tools

        register_vitals_tools(server, repository, audit_logger, tz=tz)
        register_timeline_tools(server, repository, audit_logger, tz=tz)
        register_adherence_tools(
            server, repository, audit_logger, tz=tz, clock=clock_override
        )
        register_data_management_tools(
            server, repository, audit_logger, tz=tz, clock=clock_override
        )
        logger.info("Vitals, timeline, adherence and data management tools registered")

    if audit_logger is not None:
        from carelog.domains.health.tools.audit_tools import register_audit_tools

        register_audit_tools(server, audit_logger)

    return server


# Module-level instance for FastMCP discovery ("...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
