from __future__ import annotations

from typing import Any, Dict, List


def as_rows(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]
