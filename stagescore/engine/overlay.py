from typing import Dict, Iterable, Iterator, Optional, Set

from loguru import logger

from stagescore.models.results import EDIT_FIELDS, Edit, ResultValues


class EditOverlay:
    """Unsaved operator changes layered over the authoritative team records.

    One overlay is used per scope. It knows nothing about scopes or filters:
    callers pass in the authoritative values for the active scope and restrict
    dirty ids to what is visible.
    """

    def __init__(self) -> None:
        self._edits: Dict[str, Edit] = {}

    def __len__(self) -> int:
        return len(self._edits)

    def __contains__(self, team_id: object) -> bool:
        return team_id in self._edits

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._edits))

    def get(self, team_id: str) -> Optional[Edit]:
        return self._edits.get(team_id)

    def set(
        self, team_id: str, field: str, value: str, authoritative: ResultValues
    ) -> Edit:
        """Applies one field change, seeding the edit from ``authoritative``."""
        if field not in EDIT_FIELDS:
            raise ValueError(f"Unknown edit field: {field!r}")
        edit = self._edits.get(team_id)
        if edit is None:
            edit = Edit(**authoritative.model_dump())
            self._edits[team_id] = edit
        setattr(edit, field, "" if value is None else str(value))
        edit.dirty = True
        logger.debug(f"Edit {team_id}.{field} = {value!r}")
        return edit

    def resolve(self, team_id: str, authoritative: Optional[ResultValues]) -> ResultValues:
        """Effective values: the edit if present, else the authoritative record."""
        edit = self._edits.get(team_id)
        if edit is not None:
            return edit.values()
        return authoritative if authoritative is not None else ResultValues()

    def is_dirty(self, team_id: str) -> bool:
        edit = self._edits.get(team_id)
        return bool(edit and edit.dirty)

    def dirty_ids(self, visible: Optional[Iterable[str]] = None) -> Set[str]:
        dirty = {team_id for team_id, edit in self._edits.items() if edit.dirty}
        if visible is None:
            return dirty
        return dirty & set(visible)

    def clear(self, team_id: str) -> None:
        self._edits.pop(team_id, None)

    def discard_all(self) -> int:
        count = len(self._edits)
        self._edits.clear()
        if count:
            logger.info(f"Discarded {count} unsaved edits.")
        return count
