import os
import sys

import uvicorn

# Ensure we are in the correct directory (backend)
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.append(current_dir)


def main():
    """
    Server launcher. Host and port can be overridden via API_HOST / API_PORT.
    """
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))

    print(f"[*] Starting Uvicorn server ({host}:{port})...")
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
