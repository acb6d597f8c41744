# weightscope/reporting/json_reporter.py
"""
JSON export of a model report.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Dict

from weightscope.analysis.base import ModelReport


def to_json_dict(report: ModelReport) -> Dict[str, Any]:
    """``model_id``, ``revision``, ``components``, ``param_count``, ``bytes_count``."""
    return report.to_export_dict()


def dumps(report: ModelReport) -> str:
    return json.dumps(to_json_dict(report), indent=2)


def write_json(report: ModelReport, path: str) -> None:
    """Write the report as pretty JSON; ``-`` writes to stdout."""
    if path == "-":
        sys.stdout.write(dumps(report) + "\n")
        return
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(report), f, indent=2)
