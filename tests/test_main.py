import runpy
from unittest.mock import patch

from sapsync.core.config import settings


def test_module_entry_point_serves_app_with_uvicorn():
    with patch("uvicorn.run") as run:
        runpy.run_module("sapsync.main", run_name="__main__")

    run.assert_called_once_with(
        "sapsync.main:app",
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
    )
