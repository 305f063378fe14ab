#!/usr/bin/env python3
"""Entry point for the dccon download server."""
import os

import uvicorn

PORT = int(os.getenv("DCCON_PORT", 4000))
HOST = os.getenv("DCCON_HOST", "0.0.0.0")
RELOAD = os.getenv("DCCON_DEV", "false").lower() == "true"


if __name__ == "__main__":
    print(f"[+] server listening on http://localhost:{PORT}")
    uvicorn.run(
        "dccon.main:app",
        host=HOST,
        port=PORT,
        reload=RELOAD,
        log_level="info",
    )
