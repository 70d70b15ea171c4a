import uvicorn

from sapsync.core.app_factory import create_app
from sapsync.core.config import settings

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "sapsync.main:app",
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,  # keep the JSON handler installed by configure_logging
    )
