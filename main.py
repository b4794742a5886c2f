"""
main.py - entry point for CPhT Stories

Run:
    python -m uvicorn main:app --host 0.0.0.0 --port 8000 --reload

Or:
    python main.py
"""

import os
import sys
from pathlib import Path

# Make sure the project directory is importable
PROJECT_DIR = Path(__file__).parent
sys.path.insert(0, str(PROJECT_DIR))

from interfaces.api import create_app

app = create_app()

# Export app for uvicorn
__all__ = ["app"]


def main():
    """Run the server directly"""
    import uvicorn

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", 8000))

    print("=" * 60)
    print("  CPhT Stories - filterable story listing")
    print("=" * 60)
    print(f"  Listening on:  http://{host}:{port}")
    print(f"  Listing page:  http://{host}:{port}{app.state.ctx.config.archive_url}")
    print(f"  API docs:      http://{host}:{port}/docs")
    print("=" * 60)
    print()

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=[str(PROJECT_DIR / "stories"), str(PROJECT_DIR / "interfaces")],
    )


if __name__ == "__main__":
    main()
