"""
Development server for the Concierge Pipeline API.

Reads settings from the environment (or `.env`) like the app itself and
serves `api.main:app` with uvicorn.
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the Concierge Pipeline API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    import uvicorn

    print(f"Starting server on http://{args.host}:{args.port}")
    print("Press Ctrl+C to stop")
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(Path(__file__).parent.parent),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
