"""Run the API with uvicorn: ``python -m learning_engine``."""

import uvicorn

from learning_engine.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "learning_engine.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    main()
