"""Run the service with uvicorn using the configured host and port."""

import uvicorn

from notihub.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "notihub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
