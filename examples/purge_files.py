"""Delete every file stored at the configured provider.

Run once at deployment start (or by hand) so uploads abandoned by earlier
sessions do not pile up in provider storage.
"""

import asyncio
import logging
import sys
from pathlib import Path

from budgeted_chat import ConfigurationError, ServiceConfig, build_adapter

ROOT = Path(__file__).resolve().parent.parent


async def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        config = ServiceConfig.from_env(dotenv_path=str(ROOT / ".env"))
        adapter = build_adapter(config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    print(f"Purging files stored at {adapter.get_provider_name()}...")
    summary = await adapter.delete_all_files()
    print(f"  deleted: {summary.deleted_count}")
    print(f"  failed:  {summary.failed_count}")
    await adapter.close()


if __name__ == "__main__":
    asyncio.run(main())
