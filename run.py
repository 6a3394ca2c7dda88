from pr_line_counter.config import SettingsError, get_settings
from pr_line_counter.logger import get_logger

logger = get_logger()


def main() -> None:
    host = "0.0.0.0"
    try:
        port = get_settings().port
    except SettingsError as exc:
        logger.error(f"Cannot start: {exc}")
        raise SystemExit(1) from exc

    logger.info(f"Server running on {host}:{port}")
    logger.info("Waiting for GitHub webhooks...")

    import uvicorn

    uvicorn.run(
        app="pr_line_counter.main:app",
        host=host,
        port=port,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
