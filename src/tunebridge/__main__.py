"""Run the API server: `python -m tunebridge` (or the `tunebridge` script)."""

import uvicorn

from tunebridge.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "tunebridge.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,  # configure_logging() owns the root logger
    )


if __name__ == "__main__":
    main()
