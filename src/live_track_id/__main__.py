"""Entry point for running as a module."""
from live_track_id.api import app
from live_track_id.config import load_local_env_file, setup_logging
import uvicorn
import os

if __name__ == "__main__":
    load_local_env_file()
    setup_logging(os.getenv("TRACKID_LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
