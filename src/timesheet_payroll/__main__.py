"""Run the payroll API server: ``python -m timesheet_payroll``."""

import logging

import uvicorn

from timesheet_payroll.config import configure_logging, get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting timesheet payroll API %s on %s:%d", settings.app_version, settings.host, settings.port)
    uvicorn.run(
        "timesheet_payroll.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
