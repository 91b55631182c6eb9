from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from domovita import ClientConfig, SiteSession

LOGGER_NAME = "domovita_upload"


def _get_logger() -> logging.Logger:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return logging.getLogger(LOGGER_NAME)


def _getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name, str(default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def load_env() -> Tuple[str, str]:
    """Read DOMOVITA_USER / DOMOVITA_PASSWORD, naming whichever is unset."""
    creds = {name: os.getenv(name, "") for name in ("DOMOVITA_USER", "DOMOVITA_PASSWORD")}
    missing = [name for name, value in creds.items() if not value]
    if missing:
        raise RuntimeError(f"Missing required domovita env vars: {', '.join(missing)}")
    return creds["DOMOVITA_USER"], creds["DOMOVITA_PASSWORD"]


def load_config() -> ClientConfig:
    """Build the client configuration from DOMOVITA_* variables."""
    timeout_raw = os.getenv("DOMOVITA_TIMEOUT", "").strip()
    try:
        timeout = float(timeout_raw) if timeout_raw else 60
    except ValueError as exc:
        raise RuntimeError(f"Invalid DOMOVITA_TIMEOUT: {timeout_raw!r}") from exc
    return ClientConfig(
        debug=_getenv_bool("DOMOVITA_DEBUG", False),
        debug_file=os.getenv("DOMOVITA_DEBUG_FILE") or None,
        timeout=timeout,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Log in to domovita.by and upload images.")
    parser.add_argument("images", nargs="+", help="image files to upload (10 MiB max each)")
    args = parser.parse_args(argv)

    load_dotenv()
    logger = _get_logger()
    try:
        username, password = load_env()
        config = load_config()
        with SiteSession(config) as session:
            session.login(username, password)
            try:
                for image in args.images:
                    result = session.upload_image(image)
                    print(json.dumps(result, ensure_ascii=False))
            finally:
                session.logout()
    except RuntimeError as exc:  # DomovitaError included
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
