"""
RECALL RUN: Engine v1.0
Standalone game server. One engine instance per process.

Run:  python recall_run.py
Open: http://localhost:8000

Environment: RECALL_PORT, RECALL_DATA_DIR, RECALL_SEED, RECALL_LOG_LEVEL
"""

import os
import sys
import logging
import threading
import time
import webbrowser
import uvicorn

# Ensure engine directory is on the path
ENGINE_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ENGINE_DIR)

from config import PORT, DATA_DIR, LOG_LEVEL, env_seed
from web.routes import app, init_game


def _open_browser():
    """Open the browser after the server has had time to start."""
    time.sleep(2.5)
    webbrowser.open(f"http://localhost:{PORT}")


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    game = init_game(DATA_DIR, env_seed())

    print("=" * 50)
    print("  RECALL RUN: Engine v1.0")
    print("=" * 50)
    print(f"  Server: http://localhost:{PORT}")
    print(f"  Data:   {DATA_DIR}")
    print(f"  Seed:   {game.seed}")
    print()
    print("  Press Ctrl+C to stop.")
    print("=" * 50)
    print()

    if "--no-browser" not in sys.argv:
        threading.Thread(target=_open_browser, daemon=True).start()

    # Start server (blocking)
    uvicorn.run(app, host="0.0.0.0", port=PORT, log_level="warning")


if __name__ == "__main__":
    main()
