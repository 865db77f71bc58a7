import os
import shutil
import logging
import uvicorn

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

if os.environ.get("DEBUG", "0") == "1":
    logging.getLogger().setLevel(logging.DEBUG)

APP_FACTORY = "api:create_app"


def main():
    """Start the server. Run as `python main.py` or `uvicorn api:create_app --factory`.

    Nothing is built at import time; spawned download workers re-import this module.
    """
    from config import get_config

    config = get_config()
    logger.info(f"Starting AI GIF Generator on {config.host}:{config.port}")
    for tool in ("ffmpeg", "ffprobe", "yt-dlp"):
        if shutil.which(tool):
            logger.info(f"{tool}: {shutil.which(tool)}")
        else:
            logger.warning(f"{tool} not found on PATH")
    logger.info(f"Config: {config.as_dict()}")

    uvicorn.run(APP_FACTORY, factory=True, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
