#!/usr/bin/env python3
"""Mint a merchant API key."""

import argparse
import asyncio

from trocas.database import get_session_context
from trocas.services.auth import AuthService


async def create_api_key(owner_id: str, name: str) -> dict:
    """Create a key for owner_id and return it with its record id."""
    async with get_session_context() as session:
        api_key, record = await AuthService().create_api_key(session, owner_id, name)
        return {"key_id": record.id, "api_key": api_key}


def main():
    parser = argparse.ArgumentParser(description="Create a merchant API key")
    parser.add_argument("--owner-id", required=True, help="Merchant owner identifier")
    parser.add_argument("--name", default="dashboard", help="Descriptive key name")

    args = parser.parse_args()

    result = asyncio.run(create_api_key(owner_id=args.owner_id, name=args.name))

    print("\n✅ API key created!\n")
    print(f"Key ID:   {result['key_id']}")
    print(f"API Key:  {result['api_key']}")
    print("\n⚠️  Save the API key - it won't be shown again!\n")


if __name__ == "__main__":
    main()
