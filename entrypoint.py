import uvicorn
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging

# Setup logging before the app module is imported by uvicorn
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Starting VibeSync signaling relay on {HOST}:{PORT}")
    uvicorn.run("app:app", host=HOST, port=PORT, log_config=None)
