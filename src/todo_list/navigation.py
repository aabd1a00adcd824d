"""Screens the presentation shell can show."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Splash:
    """Start-up screen."""


@dataclass(frozen=True)
class Home:
    """Task list screen."""


@dataclass(frozen=True)
class AddEdit:
    """Task form; edits an existing task when a stored task id is given."""

    task_id: int | None = None

    @property
    def is_edit_mode(self) -> bool:
        return self.task_id is not None and self.task_id > 0


Screen = Splash | Home | AddEdit
