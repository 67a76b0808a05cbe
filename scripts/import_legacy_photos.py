#!/usr/bin/env python3
"""
레거시 photos.json 메타데이터를 데이터베이스로 가져오기 (일회성).
환경 변수: DATABASE_URL (앱과 동일)
이미 있는 id 는 건너뜀. 여러 번 실행해도 안전.

Usage:
    python scripts/import_legacy_photos.py data/photos.json
"""
import argparse
import asyncio
import sys

from app.database import close_db, get_db_context, init_db
from app.exceptions import ValidationError
from app.services.legacy_import import import_legacy_photos
from app.utils.logger import setup_logging


async def run(path: str) -> int:
    await init_db()
    try:
        async with get_db_context() as session:
            result = await import_legacy_photos(session, path)
    except ValidationError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    finally:
        await close_db()

    print(f"✅ imported={result.imported} skipped={result.skipped} invalid={result.invalid}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Import a legacy photos.json file")
    parser.add_argument("path", help="Path to photos.json")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(args.path)))


if __name__ == "__main__":
    main()
