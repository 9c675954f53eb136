"""JSON export of finished runs."""

from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from apiwave.core.execution.models import TestRun
from apiwave.core.scenario.models import TestScenario

logger = logging.getLogger(__name__)

RESULTS_FILENAME = "results.json"


def sanitize_filename(text: str, max_length: int = 50) -> str:
    """Make text safe for use as a directory name."""
    sanitized = re.sub(r'[<>:"/\\|?*]', "_", text)
    sanitized = re.sub(r"[\s_]+", "_", sanitized).strip("_")
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length].rstrip("_")
    return sanitized


def create_output_dir(base_dir: Path, run_id: str, title: Optional[str] = None) -> Path:
    """Create (or replace) the output directory for a run.

    Args:
        base_dir: Base output directory
        run_id: Test run ID
        title: Scenario name, for a readable directory name

    Returns:
        Path to output directory
    """
    dir_name = f"{run_id[:8]}_{sanitize_filename(title)}" if title else run_id
    output_dir = base_dir / dir_name

    if output_dir.exists():
        shutil.rmtree(output_dir)

    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def save_run_results(
    run: TestRun,
    output_dir: Path,
    scenario: Optional[TestScenario] = None,
) -> Path:
    """Save a run and its step results to results.json.

    Returns:
        Path to results file
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    results_path = output_dir / RESULTS_FILENAME

    data = run.to_dict()
    if scenario is not None:
        data["scenario"] = {
            "id": scenario.id,
            "name": scenario.name,
            "total_steps": scenario.step_count,
        }

    with open(results_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    logger.info(f"Results saved to {results_path}")
    return results_path
