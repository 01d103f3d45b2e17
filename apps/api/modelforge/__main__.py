from __future__ import annotations

import os

import uvicorn


def main() -> None:
    # api=7000
    uvicorn.run(
        "modelforge.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "7000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )


if __name__ == "__main__":
    main()
