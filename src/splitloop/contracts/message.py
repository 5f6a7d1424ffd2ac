"""Message: the unit of work flowing between stages.

A message owns a mutable payload and a mapping of named properties. Stages
mutate payload and properties in place; they never swap one message for
another on the way back to the caller.

Back-references:
    A property value that is itself a Message (for example the root-message
    property injected by a foreach stage) is a non-owning back-reference.
    copy.deepcopy() keeps such values shared instead of duplicating the
    referenced message, which would otherwise copy the whole parent tree.
"""

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any


def _new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Message:
    """A payload plus named properties.

    Equality is identity: two messages are the same only if they are the
    same object.

    Attributes:
        payload: Any value; replaced in place by codecs and stages
        properties: Named variables scoped to this message's lifetime
        message_id: Unique identity of this message instance
        parent_id: message_id of the message this one was split from
    """

    payload: Any
    properties: dict[str, Any] = field(default_factory=dict)
    message_id: str = field(default_factory=_new_message_id)
    parent_id: str | None = None

    def get_property(self, name: str, default: Any = None) -> Any:
        """Return property value, or default if it is not set."""
        return self.properties.get(name, default)

    def set_property(self, name: str, value: Any) -> None:
        """Set a property, replacing any previous value."""
        self.properties[name] = value

    def remove_property(self, name: str) -> Any:
        """Remove a property and return its value (None if absent)."""
        return self.properties.pop(name, None)

    def derive(self, payload: Any, **properties: Any) -> "Message":
        """Create a sub-message carrying payload.

        Properties are copied on create: the sub-message starts with a shallow
        copy of this message's properties plus the given extras, so setting a
        property on the sub-message never leaks back to this message. Values
        are shared, not copied.

        Args:
            payload: Payload of the new message
            **properties: Extra properties set on the new message

        Returns:
            New Message whose parent_id is this message's id
        """
        return Message(
            payload=payload,
            properties={**self.properties, **properties},
            parent_id=self.message_id,
        )

    def __deepcopy__(self, memo: dict[int, Any]) -> "Message":
        duplicate = Message(payload=None, parent_id=self.parent_id)
        memo[id(self)] = duplicate
        duplicate.payload = copy.deepcopy(self.payload, memo)
        duplicate.properties = {
            name: value if isinstance(value, Message) else copy.deepcopy(value, memo)
            for name, value in self.properties.items()
        }
        return duplicate

    def __repr__(self) -> str:
        # Properties may hold back-references to this very message.
        return f"Message(message_id={self.message_id!r}, payload={self.payload!r}, properties={sorted(self.properties)!r})"
