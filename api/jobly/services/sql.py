from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jobly.services.errors import RepositoryValidationError

COMPANY_COLUMNS: Mapping[str, str] = {
    "numEmployees": "num_employees",
    "logoUrl": "logo_url",
}

JOB_COLUMNS: Mapping[str, str] = {}

USER_COLUMNS: Mapping[str, str] = {
    "firstName": "first_name",
    "lastName": "last_name",
    "isAdmin": "is_admin",
}


def sql_for_partial_update(data: Mapping[str, Any], column_map: Mapping[str, str]) -> tuple[str, list[Any]]:
    """Build the SET clause and bound values for a partial update.

    Assignments follow the iteration order of ``data``; fields missing from
    ``column_map`` are used as column names unchanged. The lookup key of the
    surrounding statement goes in at ``$len(values) + 1``.
    """
    if not data:
        raise RepositoryValidationError("no data")

    assignments: list[str] = []
    values: list[Any] = []
    for field, value in data.items():
        values.append(value)
        column = column_map.get(field, field)
        assignments.append(f'"{column}"=${len(values)}')
    return ", ".join(assignments), values
