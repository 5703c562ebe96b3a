import re
from pathlib import Path
from typing import Iterable, List

_FIRST_CAP = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s\-]+")


def snake_case(value: str) -> str:
    """'UserProfile' / 'user-profile' / 'user profile' -> 'user_profile'"""
    value = _SEPARATORS.sub("_", value.strip())
    value = _FIRST_CAP.sub(r"\1_\2", value)
    value = _ALL_CAP.sub(r"\1_\2", value)
    return re.sub(r"_+", "_", value).lower()


def default_foreign_key(table: str) -> str:
    return f"{snake_case(table)}_id"


def unique(values: Iterable) -> List:
    """Distinct values in first-seen order"""
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def fields_mentioned_in(template_path: Path, fields: Iterable[str]) -> List[str]:
    """Fields whose name appears (case-insensitive) somewhere in a template file"""
    with open(template_path, 'r', encoding='utf-8') as template_file:
        contents = template_file.read().lower()

    return [field for field in fields if field.lower() in contents]
