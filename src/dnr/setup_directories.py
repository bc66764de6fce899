"""
Directory setup for dnr pipeline runs.

Flat layout under one base directory, shared by every run:
- panels/     annotated panel tables and exclusion lists
- summaries/  Summary Row tables
- logs/       one log file per run
Run IDs in filenames keep runs apart and sort by time.
"""

from pathlib import Path
from typing import Dict, Optional, Union


def setup_output_directories(base_output_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path
        Base output directory (``~`` is expanded).

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'panels', 'summaries', 'logs'
    """
    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "panels": base_output_dir / "panels",
        "summaries": base_output_dir / "summaries",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def get_log_path(output_dirs: Dict[str, Path], run_id: Optional[str] = None) -> Path:
    """
    Get the log file path for a run.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_id : str, optional
        Run identifier. If None, the log goes to ``dnr_latest.log``.

    Returns
    -------
    Path
        Full path: logs/dnr_<run_id>.log

    Example
    -------
    >>> get_log_path(dirs, "20260105T120000Z_1a2b3c4d")
    Path('output/logs/dnr_20260105T120000Z_1a2b3c4d.log')
    """
    log_dir = Path(output_dirs["logs"])
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"dnr_{run_id or 'latest'}.log"
