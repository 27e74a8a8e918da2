from typing import Any, ClassVar, Iterator, Mapping

FieldNameMapping = Mapping[str, Any]


class BaseOperator(Mapping[str, Any]):
    def __init__(self, key: str, value: Any):
        assert isinstance(key, str)
        self._key = key
        self._value = value

    def __getitem__(self, key: str) -> Any:
        if key == self._key:
            return self._value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        yield self._key

    def __len__(self) -> int:
        return 1

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._value!r})"


class BaseNonFieldOperator(BaseOperator):
    operator: ClassVar[str]

    def __init__(self, expression: FieldNameMapping):
        super().__init__(self.operator, dict(expression))
