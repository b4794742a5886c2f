"""
Generate a JWT for the admin API (/admin/*).

Usage (from project root):
  python scripts/admin_token.py
  python scripts/admin_token.py --days 7

Requires CPHT_ADMIN_JWT_SECRET in environment (e.g. from .env in project root).
Output: token on stdout for use as Authorization: Bearer <token>.
"""

import argparse
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Load .env from project root
_root = Path(__file__).resolve().parent.parent
if _root.joinpath(".env").exists():
    from dotenv import load_dotenv
    load_dotenv(_root / ".env")

import jwt


def make_token(secret: str, days: int, subject: str = "admin") -> str:
    payload = {
        "sub": subject,
        "exp": datetime.now(timezone.utc) + timedelta(days=days),
    }
    token = jwt.encode(payload, secret, algorithm="HS256")
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def main():
    parser = argparse.ArgumentParser(description="Generate JWT for the admin API")
    parser.add_argument(
        "--days",
        type=int,
        default=30,
        help="Token validity in days (default: 30)",
    )
    parser.add_argument("--sub", default="admin", help="Subject claim (default: admin)")
    args = parser.parse_args()

    secret = os.getenv("CPHT_ADMIN_JWT_SECRET")
    if not secret:
        print("Set CPHT_ADMIN_JWT_SECRET in environment (e.g. in .env)", file=sys.stderr)
        sys.exit(1)

    print(make_token(secret, args.days, args.sub))


if __name__ == "__main__":
    main()
