from typing import Any, Callable, Dict, Mapping, Sequence, Union

from bson import json_util

from mongodoc.odm.fields import ID_FIELD, coerce_identity

Criteria = Union[str, Mapping[str, Any], Any, None]


def parse_json(value: str) -> Dict[str, Any]:
    """Parse MongoDB extended JSON, e.g. ``'{"_id": {"$oid": "..."}}'``"""
    result = json_util.loads(value)
    if not isinstance(result, dict):
        raise ValueError(f"Criteria must be a JSON object, got {value!r}")
    return result


def build_criteria(
    criteria: Criteria,
    current: Mapping[str, Any],
    resolve: Callable[[str], str],
) -> Dict[str, Any]:
    """
    Turn the argument of `Document.load` into a filter.

    - a string starting with ``{`` is parsed as extended JSON
    - an empty value uses the current ``_id``, or every current field when
      there is no ``_id``
    - a mapping is used as is
    - anything else is taken as an ``_id``

    Keys of filters without ``_id`` go through alias resolution and a string
    ``_id`` is coerced to ``ObjectId`` when it is one. The result may be
    empty, which the caller reports.
    """
    if isinstance(criteria, str) and criteria.startswith("{"):
        criteria = parse_json(criteria)
    elif _is_empty(criteria):
        if current.get(ID_FIELD) is not None:
            criteria = {ID_FIELD: current[ID_FIELD]}
        else:
            criteria = dict(current)
    elif not isinstance(criteria, Mapping):
        criteria = {ID_FIELD: criteria}

    if ID_FIELD in criteria:
        result = dict(criteria)
    else:
        result = {resolve(key): value for key, value in criteria.items()}

    if ID_FIELD in result:
        result[ID_FIELD] = coerce_identity(result[ID_FIELD])
    return result


def build_projection(fields: Sequence[str], resolve: Callable[[str], str]):
    return [resolve(name) for name in fields] if fields else None


def _is_empty(criteria: Criteria) -> bool:
    if criteria is None:
        return True
    if isinstance(criteria, (str, Mapping)):
        return not criteria
    return False
