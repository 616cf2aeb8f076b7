"""Convenience script for running one BasedNews ingestion pass locally."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the basednews package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from basednews.config import AppConfig  # noqa: E402  (import after path setup)
from basednews.services.ingestion import run_ingestion  # noqa: E402
from basednews.storage import Storage, StorageError  # noqa: E402


def main() -> None:
    """Fetch every scheduled source once and print the newly stored articles."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    try:
        config = AppConfig.from_env()
        storage = Storage.from_url(config.database_url)
    except (ValueError, StorageError) as exc:
        logging.error("Could not initialise BasedNews: %s", exc)
        sys.exit(1)

    try:
        created = run_ingestion(storage, config=config)
    finally:
        storage.dispose()

    print(json.dumps([article.model_dump(mode="json", by_alias=True) for article in created], indent=2))


if __name__ == "__main__":
    main()
