"""Local .env support for scripts and the API process."""

import logging
from pathlib import Path
from typing import Optional, Union

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)


def load_env_file(path: Optional[Union[str, Path]] = None) -> bool:
    """Load variables from a .env file without overwriting the environment.

    WHAT:
        Used by glasscart.database when DATABASE_URL is not exported, so
        `python -m glasscart.seed_demo` and `start_api.py` work from a checkout.
    WHY:
        Real environment variables (production, CI) must always win over a
        developer's local file.

    Args:
        path: Explicit file; defaults to the nearest .env above the working directory

    Returns:
        True if a file was found and read
    """
    env_path = str(path) if path else find_dotenv(usecwd=True)
    if not env_path:
        logger.debug("[ENV] No local .env file found")
        return False

    loaded = load_dotenv(env_path, override=False)
    if loaded:
        logger.info(f"[ENV] Loaded {env_path} (existing variables were NOT overwritten)")
    return loaded
