#!/usr/bin/env python3
"""
Account Core Entry Point

Starts the FastAPI server on the configured host and port.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from account_core.config import get_config
from account_core.api import run_server


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Account Core...")
    print("🔒 Audit trail active" if config.enable_audit_logging else "🔓 Audit trail disabled")
    print("💰 All balances use Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False  # Set to True for development
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Account Core...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
