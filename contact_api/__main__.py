import uvicorn

from contact_api.core.config import settings
from contact_api.core.logging import setup_logging


def main() -> None:
    logger = setup_logging(settings)
    logger.info(
        "server_starting",
        port=settings.PORT,
        mail_receiver=settings.MAIL_RECEIVER or "not configured",
    )
    uvicorn.run(
        "contact_api.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        proxy_headers=False,  # client IPs are resolved against TRUSTED_PROXIES
        log_config=None,
    )


if __name__ == "__main__":
    main()
