import inspect
from collections import defaultdict
from enum import Enum
from typing import (
    Callable,
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    List,
    Tuple,
    Type,
    Union,
)

from typing_extensions import TypeAlias

import mongodoc


class EventTypes(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    UPSERT = "UPSERT"
    LOAD = "LOAD"
    DELETE = "DELETE"


class ActionDirections(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"


Document: TypeAlias = "mongodoc.Document"
Action: TypeAlias = Callable[[Document], None]
EventTypesArg: TypeAlias = Union[Iterable[EventTypes], EventTypes]
ActionKey: TypeAlias = Tuple[Type[Document], EventTypes, ActionDirections]


def _flatten(event_types: Tuple[EventTypesArg, ...]) -> List[EventTypes]:
    result: List[EventTypes] = []
    for event_type in event_types:
        if isinstance(event_type, EventTypes):
            result.append(event_type)
        else:
            result.extend(event_type)
    return result


class ActionRegistry:
    """
    Methods decorated with `before_event`/`after_event`, indexed per
    document class when the class is created
    """

    _actions: ClassVar[
        Dict[Action, Tuple[List[EventTypes], ActionDirections]]
    ] = {}
    _type_actions: ClassVar[Dict[ActionKey, List[Action]]] = defaultdict(list)

    @classmethod
    def register_action(
        cls, action_direction: ActionDirections, *event_types: EventTypesArg
    ) -> Callable[[Action], Action]:
        flat_event_types = _flatten(event_types)

        def decorator(f: Action) -> Action:
            cls._actions[f] = (flat_event_types, action_direction)
            return f

        return decorator

    @classmethod
    def register_type(cls, doc_type: Type[Document]) -> None:
        stale = [key for key in cls._type_actions if key[0] is doc_type]
        for key in stale:
            del cls._type_actions[key]

        for action in cls._iter_actions(doc_type):
            event_types, action_direction = cls._actions[action]
            for event_type in event_types:
                cls._type_actions[doc_type, event_type, action_direction].append(
                    action
                )

    @classmethod
    def _iter_actions(cls, doc_type: Type[Document]) -> Iterator[Action]:
        # base classes first, each in definition order; an override hides
        # the action it replaces
        seen = set()
        for klass in reversed(doc_type.__mro__):
            for name in vars(klass):
                if name in seen:
                    continue
                member = inspect.getattr_static(doc_type, name, None)
                if inspect.isfunction(member) and member in cls._actions:
                    seen.add(name)
                    yield member

    @classmethod
    def run_actions(
        cls,
        document: Document,
        event_type: EventTypes,
        action_direction: ActionDirections,
    ) -> None:
        key = document.__class__, event_type, action_direction
        for action in cls._type_actions.get(key, ()):
            action(document)


def before_event(*event_types: EventTypesArg) -> Callable[[Action], Action]:
    """
    Decorator. The method runs right after the document's own
    `before_*` hook for the mentioned events

    :param event_types: Union[Iterable[EventTypes], EventTypes] - event types
    """
    return ActionRegistry.register_action(
        ActionDirections.BEFORE, *event_types
    )


def after_event(*event_types: EventTypesArg) -> Callable[[Action], Action]:
    """
    Decorator. The method runs right after the document's own
    `after_*` hook for the mentioned events

    :param event_types: Union[Iterable[EventTypes], EventTypes] - event types
    """
    return ActionRegistry.register_action(ActionDirections.AFTER, *event_types)
