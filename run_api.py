#!/usr/bin/env python3
"""
Script to run the PageWatch API server.
"""

import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as watcher_config
from utilities.logger import setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=watcher_config.log_level,
        log_format=watcher_config.log_format,
        log_file=watcher_config.log_file,
        debug=watcher_config.debug
    )

    print("🚀 Starting PageWatch API Server")
    print(f"📡 Host: {config.host}")
    print(f"🔌 Port: {config.port}")
    print(f"🌐 Debug: {config.debug}")
    print(f"💾 State backend: {watcher_config.state_backend}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=watcher_config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
