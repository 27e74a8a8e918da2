from mongodoc.odm.operators.update import (
    AddToSet,
    Bit,
    Inc,
    Pop,
    Pull,
    PullAll,
    Push,
    PushAll,
    Set,
    SetOnInsert,
    Unset,
)

__all__ = [
    # Array
    "AddToSet",
    "Pop",
    "Pull",
    "PullAll",
    "Push",
    "PushAll",
    # Bitwise
    "Bit",
    # General
    "Inc",
    "Set",
    "SetOnInsert",
    "Unset",
]
