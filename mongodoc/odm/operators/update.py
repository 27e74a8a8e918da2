"""
Update operator tokens.

Each class is a one-item mapping ``{token: {field: payload}}``, so instances
can be passed straight to ``Document.upsert`` or compared with plain dicts:

```python
Inc({"visits": 1}) == {"$inc": {"visits": 1}}
```
"""

from mongodoc.odm.operators import BaseNonFieldOperator


class Set(BaseNonFieldOperator):
    """
    `$set`, last write wins per field

    <https://docs.mongodb.com/manual/reference/operator/update/set/>
    """

    operator = "$set"


class Unset(BaseNonFieldOperator):
    """
    `$unset`, the payload is ignored by the server

    <https://docs.mongodb.com/manual/reference/operator/update/unset/>
    """

    operator = "$unset"


class SetOnInsert(BaseNonFieldOperator):
    """
    `$setOnInsert`, only applied when an upsert creates the record

    <https://docs.mongodb.com/manual/reference/operator/update/setOnInsert/>
    """

    operator = "$setOnInsert"


class Inc(BaseNonFieldOperator):
    """
    `$inc`, deltas for the same field are summed before sending

    <https://docs.mongodb.com/manual/reference/operator/update/inc/>
    """

    operator = "$inc"


class Bit(BaseNonFieldOperator):
    """
    `$bit`, e.g. ``Bit({"flags": {"or": 4}})``

    <https://docs.mongodb.com/manual/reference/operator/update/bit/>
    """

    operator = "$bit"


class AddToSet(BaseNonFieldOperator):
    """
    `$addToSet`

    <https://docs.mongodb.com/manual/reference/operator/update/addToSet/>
    """

    operator = "$addToSet"


class Pop(BaseNonFieldOperator):
    """
    `$pop`: `1` drops the last element, `-1` the first one

    <https://docs.mongodb.com/manual/reference/operator/update/pop/>
    """

    operator = "$pop"


class Push(BaseNonFieldOperator):
    """
    `$push` of a single value

    <https://docs.mongodb.com/manual/reference/operator/update/push/>
    """

    operator = "$push"


class PushAll(BaseNonFieldOperator):
    """
    `$pushAll` of a list of values

    The server removed it in 3.6; `PyMongoCollection` rewrites it as
    `$push` with `$each` before sending.
    """

    operator = "$pushAll"


class Pull(BaseNonFieldOperator):
    """
    `$pull` of a single value (or condition)

    <https://docs.mongodb.com/manual/reference/operator/update/pull/>
    """

    operator = "$pull"


class PullAll(BaseNonFieldOperator):
    """
    `$pullAll` of a list of values

    <https://docs.mongodb.com/manual/reference/operator/update/pullAll/>
    """

    operator = "$pullAll"
