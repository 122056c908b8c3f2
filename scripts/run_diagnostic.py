"""
Run one synchronous diagnostic against the configured gateway.

Usage:
    python scripts/run_diagnostic.py <target-id> [user-id ...]
"""

import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from diagnostics_api.dependencies import get_diagnostic_service, get_gateway
from diagnostics_api.utils.database import init_db


async def run_diagnostic(target_id: str, user_checks):
    print(f"🔧 Diagnosing {target_id}...")
    init_db()

    service = get_diagnostic_service()
    try:
        result = await service.trigger([target_id], user_checks=user_checks, mode="sync")
    finally:
        await get_gateway().close()

    for log in result['logs']:
        print("\n" + "=" * 60)
        print(f"📊 DIAGNOSTIC LOG {log['id']} - {log['target_id']} ({log['target_type']})")
        print("=" * 60)
        for i, step in enumerate(log['steps'], 1):
            print(f"{i}. [{step['status']}] {step['step_name']}: {step['summary']}")
        print(f"\n{log['final_conclusion']}")
        print("\nRaw log:")
        print(json.dumps(log, indent=2))


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(run_diagnostic(sys.argv[1], sys.argv[2:]))
