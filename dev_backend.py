"""Run the API locally with auto-reload.

Host and port come from the ``app`` section of the active config
(``$FXRATES_CONFIG`` or ./config.yaml) and can be overridden with
FXRATES_HOST / FXRATES_PORT.
"""
import os
from pathlib import Path

import uvicorn

from fxrates.config import load_config


def main() -> None:
    root = Path(__file__).resolve().parent
    config = load_config()
    # Reload workers import backend.main and resolve the config themselves
    os.environ.setdefault("FXRATES_CONFIG", str(config.config_path.resolve()))
    existing = os.environ.get("PYTHONPATH", "")
    if str(root) not in existing.split(os.pathsep):
        os.environ["PYTHONPATH"] = os.pathsep.join(filter(None, [existing, str(root)]))

    uvicorn.run(
        "backend.main:app",
        host=os.getenv("FXRATES_HOST", config.get("app.host", "127.0.0.1")),
        port=int(os.getenv("FXRATES_PORT", config.get("app.port", 8000))),
        reload=True,
        app_dir=str(root),
        reload_dirs=[str(root / "backend"), str(root / "fxrates")],
        log_level=config.get("logging.level", "INFO").lower(),
    )


if __name__ == "__main__":
    main()
