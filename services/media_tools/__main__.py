from __future__ import annotations

import asyncio
import sys

from services.media_tools.service import MediaToolsService, build_orchestrator
from shared.config import MediaGateConfig
from shared.errors import ConfigurationError
from shared.logging_utils import configure_logging, get_logger
from shared.protocol import VERSION
from shared.service_base import NDJSONService


def main() -> None:
    config = MediaGateConfig.load()
    configure_logging(config.log_level)
    log = get_logger("tools")
    try:
        config.validate()
        svc = MediaToolsService(build_orchestrator(config))
    except ConfigurationError as exc:
        log.error("cannot start: %s", exc)
        sys.exit(1)
    app = NDJSONService(name="mediagate.tools", kind="service", version=VERSION, ops=svc.ops())
    try:
        asyncio.run(app.run_stdio())
    except OSError as exc:
        log.error("stdio transport failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
