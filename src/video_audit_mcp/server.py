"""Main FastMCP server: mounts the audit tool server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .tools.audit import AuditRuntime, audit_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook: tracing setup, then shared-client teardown."""
    tracing.setup()
    yield {}
    await AuditRuntime.aclose()
    tracing.shutdown()
    logger.info("Lifespan shutdown: audit clients closed")


app = FastMCP(
    "video-audit",
    instructions=(
        "Short-form video auditor: scores TikTok and YouTube Shorts videos "
        "against a best-practice checklist and suggests improvements."
    ),
    lifespan=_lifespan,
)

app.mount(audit_server)


def main() -> None:
    """Entry-point for ``video-audit-mcp`` console script."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run()


if __name__ == "__main__":
    main()
