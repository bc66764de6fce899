"""Runtime initialization helpers for the dnr pipeline.

This module handles initialization responsibilities shared by the CLI and
scripts:
- Loading a user config file (Python file holding a CONFIG dict)
- Generating a run ID
- Persisting the resolved configuration next to the outputs
"""

import importlib.util
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

from dnr.schemas.internal import InternalConfig

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing a CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ImportError
        If the file cannot be loaded as a module.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def generate_run_id() -> str:
    """Return a sortable run identifier: ``YYYYmmddTHHMMSSZ_<8 hex>``."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}_{uuid.uuid4().hex[:8]}"


def persist_runtime_config(config: InternalConfig, output_dirs: Dict[str, Path]) -> Path:
    """Persist final runtime configuration to the output directory.

    Saves the complete resolved configuration for reproducibility and debugging.
    The run ID is part of the filename.
    """
    config_output_dir = Path(output_dirs["base"])
    config_output_dir.mkdir(parents=True, exist_ok=True)

    run_id = config.run_id or generate_run_id()
    config_file = config_output_dir / f"runtime_config_{run_id}.json"

    config_dict = config.model_dump()
    config_dict["run_id"] = run_id
    config_dict["created_at"] = datetime.now(timezone.utc).isoformat()

    with open(config_file, 'w') as f:
        json.dump(config_dict, f, indent=2, default=str)

    logger.info("Runtime config saved: %s", config_file)
    return config_file


__all__ = ['load_user_config_dict', 'generate_run_id', 'persist_runtime_config']
