"""In-memory record host for attachment tests."""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from record_uploads.uploaded_file import UploadedFile

# A validator receives the attribute value and returns an error message or None
Validator = Callable[[Any], str | None]


def allowed_extensions(*extensions: str) -> Validator:
    """Validator rejecting pending uploads whose extension is not listed."""

    def _validate(value: Any) -> str | None:
        if isinstance(value, UploadedFile) and value.extension not in extensions:
            return f"Only files with these extensions are allowed: {', '.join(extensions)}"
        return None

    return _validate


class FakeRecord:
    """Minimal RecordHost keeping attributes, persisted values and errors in dicts."""

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        scenario: str = "default",
        is_new_record: bool = True,
        validators: Mapping[str, Validator] | None = None,
        id: int = 1,
    ) -> None:
        self.id = id
        self._scenario = scenario
        self._is_new_record = is_new_record
        self._attributes: dict[str, Any] = dict(attributes or {})
        self._old: dict[str, Any] = {} if is_new_record else dict(self._attributes)
        self.validators: dict[str, Validator] = dict(validators or {})
        self.errors: dict[str, list[str]] = {}
        self.events: list[str] = []
        self.unset: set[str] = set()
        self.updates: list[dict[str, Any]] = []
        self.persist_count = 0
        self.removed = False

    @property
    def scenario(self) -> str:
        return self._scenario

    @property
    def is_new_record(self) -> bool:
        return self._is_new_record

    def get_attribute(self, name: str) -> Any:
        return self._attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        self._attributes[name] = value
        self.unset.discard(name)

    def unset_attribute(self, name: str) -> None:
        self.unset.add(name)

    def get_old_attribute(self, name: str) -> Any:
        return self._old.get(name)

    def is_attribute_changed(self, name: str) -> bool:
        return self._attributes.get(name) != self._old.get(name)

    def has_errors(self, name: str) -> bool:
        return bool(self.errors.get(name))

    def validate(self, attribute_names: Iterable[str] | None = None) -> bool:
        names = list(self.validators if attribute_names is None else attribute_names)
        for name in names:
            self.errors.pop(name, None)
            validator = self.validators.get(name)
            if validator is None:
                continue
            message = validator(self._attributes.get(name))
            if message:
                self.errors.setdefault(name, []).append(message)
        return not any(self.errors.get(name) for name in names)

    def trigger(self, event: str) -> None:
        self.events.append(event)

    async def update_attributes(self, values: Mapping[str, Any]) -> None:
        self._attributes.update(values)
        self._old.update(values)
        self.updates.append(dict(values))

    async def persist(self) -> None:
        """Write every attribute except the unset ones to the persisted state."""
        for name, value in self._attributes.items():
            if name not in self.unset:
                self._old[name] = value
        self.unset.clear()
        self._is_new_record = False
        self.persist_count += 1

    async def remove(self) -> None:
        self.removed = True


def saved_record(scenario: str = "default", **attributes: Any) -> FakeRecord:
    """Return a record that looks loaded from storage with ``attributes``."""
    return FakeRecord(attributes, scenario=scenario, is_new_record=False)
