from typing import Any, List, Mapping


def normalize_sequence(value: Any) -> List[Any]:
    """
    One ordered list for fields stored sometimes as list, sometimes as map.

    Maps keyed by position ("0", "1", ...) keep that order; other maps keep
    insertion order. None becomes an empty list, a scalar a one-item list.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    if isinstance(value, Mapping):
        keys = list(value.keys())
        if keys and all(str(key).isdigit() for key in keys):
            keys.sort(key=lambda key: int(key))
        return [value[key] for key in keys if value[key] is not None]
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, str) and not value.strip():
        return []
    return [value]


def normalize_strings(value: Any) -> List[str]:
    return [str(item).strip() for item in normalize_sequence(value) if str(item).strip()]
