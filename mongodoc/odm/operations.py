from copy import deepcopy
from typing import Any, Dict, Iterable, Iterator, Mapping, Set

from mongodoc.odm.operators import FieldNameMapping
from mongodoc.odm.operators.update import (
    Bit,
    Inc,
    Pop,
    Pull,
    PullAll,
    Push,
    PushAll,
    Set as SetOperator,
    Unset,
)

UNSET_MARKER = 1
POP_LAST = 1
POP_FIRST = -1


def normalize_token(token: str) -> str:
    return token if token.startswith("$") else f"${token}"


class UpdateOperations(Mapping[str, Dict[str, Any]]):
    """
    Update operators queued on a document, kept in the shape of a MongoDB
    update document: ``{"$inc": {"visits": 2}, "$pushAll": {...}}``.

    Deltas accumulate (`inc`, `push`, `pull` and their list forms), while
    `set`, `unset`, `pop`/`shift` and `bit` are last write wins. A second
    `push` (or `pull`) on the same field turns the pending value into a
    `$pushAll` (or `$pullAll`) list.
    """

    def __init__(self) -> None:
        self._operations: Dict[str, Dict[str, Any]] = {}

    def __getitem__(self, token: str) -> Dict[str, Any]:
        return self._operations[token]

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._operations!r})"

    # operators

    def set(self, path: str, value: Any) -> None:
        self._bucket(SetOperator.operator)[path] = value

    def unset(self, path: str) -> None:
        self._bucket(Unset.operator)[path] = UNSET_MARKER

    def inc(self, path: str, delta: Any = 1) -> None:
        bucket = self._bucket(Inc.operator)
        if path in bucket:
            bucket[path] += delta
        else:
            bucket[path] = delta

    def push(self, path: str, value: Any) -> None:
        self._append(Push.operator, PushAll.operator, path, value)

    def push_all(self, path: str, values: Iterable[Any]) -> None:
        self._extend(Push.operator, PushAll.operator, path, values)

    def pop(self, path: str) -> None:
        self._bucket(Pop.operator)[path] = POP_LAST

    def shift(self, path: str) -> None:
        self._bucket(Pop.operator)[path] = POP_FIRST

    def pull(self, path: str, value: Any) -> None:
        self._append(Pull.operator, PullAll.operator, path, value)

    def pull_all(self, path: str, values: Iterable[Any]) -> None:
        self._extend(Pull.operator, PullAll.operator, path, values)

    def bit(self, path: str, value: Any) -> None:
        self._bucket(Bit.operator)[path] = value

    # whole document

    def merged(self, *extra: Mapping[str, FieldNameMapping]) -> Dict[str, Dict[str, Any]]:
        """
        Return the queued operations overlaid with ``extra``.

        Tokens may be given with or without the leading ``$``. On a field
        collision inside one operator the value from ``extra`` wins.
        """
        result = self.to_dict()
        for operations in extra:
            for token, fields in operations.items():
                token = normalize_token(token)
                result[token] = {**result.get(token, {}), **fields}
        return result

    def paths(self) -> Set[str]:
        return {path for fields in self._operations.values() for path in fields}

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return deepcopy(self._operations)

    def load(self, operations: Mapping[str, FieldNameMapping]) -> None:
        self._operations = {
            normalize_token(token): deepcopy(dict(fields))
            for token, fields in operations.items()
        }

    def clear(self) -> None:
        self._operations = {}

    # internal

    def _bucket(self, token: str) -> Dict[str, Any]:
        return self._operations.setdefault(token, {})

    def _take(self, token: str, path: str) -> Any:
        bucket = self._operations[token]
        value = bucket.pop(path)
        if not bucket:
            del self._operations[token]
        return value

    def _append(self, single: str, plural: str, path: str, value: Any) -> None:
        if path in self._operations.get(plural, ()):
            self._operations[plural][path].append(value)
        elif path in self._operations.get(single, ()):
            first = self._take(single, path)
            self._bucket(plural)[path] = [first, value]
        else:
            self._bucket(single)[path] = value

    def _extend(
        self, single: str, plural: str, path: str, values: Iterable[Any]
    ) -> None:
        values = list(values)
        if path in self._operations.get(single, ()):
            values.insert(0, self._take(single, path))
        bucket = self._bucket(plural)
        if path in bucket:
            bucket[path].extend(values)
        else:
            bucket[path] = values
