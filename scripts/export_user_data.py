#!/usr/bin/env python3
"""
Export one user's profile, progress and learned words to JSON
"""

import asyncio
import sys
from pathlib import Path

from dailyword.core.database.database_manager import DatabaseManager
from dailyword.core.profile.profile_store import ProfileStore
from dailyword.utils import format_json_safely


async def export_user_data(db_path: str, user_id: str, output_path: str) -> bool:
    """Write the user's data snapshot to output_path"""
    try:
        db_manager = DatabaseManager(db_path)
        db_manager.init_database()
        snapshot = await ProfileStore(db_manager).export_user_data(user_id)

        if snapshot["profile"] is None and not snapshot["words"]:
            print(f"❌ No data found for user {user_id}")
            return False

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(format_json_safely(snapshot, indent=2), encoding="utf-8")

        print(f"✅ Exported data for {user_id} to {output_path}")
        print(f"   • Level: {snapshot['metadata']['level']}")
        print(f"   • Learned words: {snapshot['metadata']['total_words']}")
        return True

    except Exception as e:
        print(f"❌ Export failed: {e}")
        return False


def main():
    """Main export function"""
    if len(sys.argv) != 4:
        print("Usage: python export_user_data.py <database_path> <user_id> <output_json_path>")
        print("Example: python export_user_data.py data/dailyword.db 3f2a... data/export.json")
        sys.exit(1)

    db_path, user_id, output_path = sys.argv[1:4]

    if not Path(db_path).exists():
        print(f"❌ Database file not found: {db_path}")
        sys.exit(1)

    if asyncio.run(export_user_data(db_path, user_id, output_path)):
        sys.exit(0)
    else:
        sys.exit(1)


if __name__ == "__main__":
    main()
