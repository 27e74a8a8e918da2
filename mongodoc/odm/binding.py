"""
Typed access to schemaless documents through pydantic models.

```python
class UserModel(BaseModel):
    id: Optional[PydanticObjectId] = Field(default=None, alias="_id")
    email: str
    visits: int = 0

user = factory("user", user_id)
model = to_model(user, UserModel)     # loads the user lazily
model.visits += 1
apply_model(user, model)              # only `visits` is marked changed
user.save()
```
"""

from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel

from mongodoc.odm.documents import Document
from mongodoc.odm.fields import ID_ALIAS, ID_FIELD

M = TypeVar("M", bound=BaseModel)

_MISSING = object()


def _storage_name(name: str, alias: Any) -> str:
    return alias if isinstance(alias, str) else name


def to_model(document: Document, model_type: Type[M]) -> M:
    data: Dict[str, Any] = {}
    for name, field_info in model_type.model_fields.items():
        key = _storage_name(name, field_info.alias)
        value = document.get_value(key, _MISSING)
        if value is not _MISSING:
            data[key] = value
    return model_type.model_validate(data)


def apply_model(
    document: Document, model: BaseModel, exclude_unset: bool = True
) -> Document:
    """
    Write the model fields back to the document. The identity is never
    written and fields whose value did not change stay clean, so only real
    changes are saved.
    """
    values = model.model_dump(by_alias=True, exclude_unset=exclude_unset)
    for key, value in values.items():
        if key in (ID_FIELD, ID_ALIAS):
            continue
        document.set_value(key, value)
    return document
