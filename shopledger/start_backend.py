#!/usr/bin/env python3
"""
Shop admin service launcher.

    python -m shopledger.start_backend
"""
import sys

from shopledger.core.config import settings


def main() -> int:
    import uvicorn

    print(f"[shopledger] Starting shop admin service on http://{settings.HOST}:{settings.PORT}")
    try:
        uvicorn.run(
            "shopledger.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[shopledger] Shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
