from __future__ import annotations

import sys

from services.media_mcp.server import build_server
from services.media_tools.service import MediaToolsService, build_orchestrator
from shared.config import MediaGateConfig
from shared.errors import ConfigurationError
from shared.logging_utils import configure_logging, get_logger


def main() -> None:
    config = MediaGateConfig.load()
    configure_logging(config.log_level)
    log = get_logger("mcp")
    try:
        config.validate()
        server = build_server(MediaToolsService(build_orchestrator(config)))
    except ConfigurationError as exc:
        log.error("cannot start: %s", exc)
        sys.exit(1)
    try:
        server.run()
    except Exception:  # noqa: BLE001
        log.exception("error starting MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
