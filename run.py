#!/usr/bin/env python3
"""
Site Logistics Tracker Entry Point

Starts the FastAPI server with host, port and logging taken from
TRACKER_* environment settings.
"""

import sys

from logistics_tracker.config import get_config
from logistics_tracker.logging_config import setup_logging
from logistics_tracker.api import run_server


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format, config.log_file)

    print("📦 Starting Site Logistics Tracker...")
    print(f"🗄️  Storage: {config.storage_backend} ({config.database_path})")
    print("🔒 Audit trail active" if config.enable_audit_logging else "⚠️  Audit trail disabled")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=config.api_reload
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Site Logistics Tracker...")
    except Exception as e:
        logger.exception("Error starting server")
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
