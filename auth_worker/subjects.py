"""
Subjects: the principal payload embedded in issued tokens, validated per subject type.
"""
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError


class UserSubject(BaseModel):
    id: str


@dataclass(frozen=True)
class Subject:
    type: str
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def sub(self) -> str:
        """Stable token subject: type plus a digest of the properties."""
        canonical = json.dumps(self.properties, sort_keys=True, separators=(",", ":"))
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
        return f"{self.type}:{digest}"


class SubjectSchemas:
    """Registered subject types. Shared with client apps so both sides validate the same shape."""

    def __init__(self, **schemas: type[BaseModel]):
        self._schemas = dict(schemas)

    def types(self) -> list[str]:
        return list(self._schemas)

    def validate(self, subject: Subject) -> Subject:
        """Return subject with validated properties; ValueError for unknown type or bad properties."""
        schema = self._schemas.get(subject.type)
        if schema is None:
            raise ValueError(f"Unknown subject type: {subject.type}")
        try:
            model = schema.model_validate(subject.properties)
        except ValidationError as e:
            raise ValueError(f"Invalid {subject.type} subject: {e}") from e
        return Subject(type=subject.type, properties=model.model_dump())


subjects = SubjectSchemas(user=UserSubject)


def user_subject(user_id: str) -> Subject:
    return Subject(type="user", properties={"id": user_id})
