#!/usr/bin/env python3
"""Run the Chain Reaction Flask server."""

import logging

from chainreaction.app import create_app
from chainreaction.config import Settings

if __name__ == "__main__":
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)

    print("="*60)
    print("💥 Chain Reaction Server")
    print("="*60)
    print(f"Board: {settings.rows}x{settings.cols}, players: {settings.player_count}")
    print(f"Server running at: http://localhost:{settings.port}")
    print("Press Ctrl+C to stop")
    print("="*60)

    app.run(host=settings.host, port=settings.port, debug=settings.debug)
