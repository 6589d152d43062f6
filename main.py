"""
main.py: Server launcher and entry point.

Run this file to start the SmartCharge API server:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("SMARTCHARGE_HOST", "127.0.0.1")
PORT = int(os.getenv("SMARTCHARGE_PORT", "8000"))


def main() -> None:
    """Start the SmartCharge API server."""
    print("=" * 60)
    print("  SmartCharge: green-hour EV charging API")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Start uvicorn; this blocks until CTRL+C
    uvicorn.run(
        "app:app",       # points to app.py -> app object
        host=HOST,
        port=PORT,
        reload=True,     # hot-reload on file changes during development
        log_level="info",
    )


if __name__ == "__main__":
    main()
