from __future__ import annotations

from dataclasses import dataclass

from attabench.task import Task


@dataclass(frozen=True)
class Pattern:
    text: str
    negated: bool


class TaskFilter:
    """Search-field style task filter.

    Comma separated groups are alternatives; the whitespace separated words in
    a group must all match. A word starting with "!" must not occur in the
    task name. Matching is case-insensitive substring search.
    """

    def __init__(self, text: str | None = None) -> None:
        self.text = text or ""
        groups: list[tuple[Pattern, ...]] = []
        for group in self.text.lower().split(","):
            patterns = []
            for word in group.split():
                if word.startswith("!"):
                    pattern = Pattern(word[1:], True)
                else:
                    pattern = Pattern(word, False)
                if pattern.text:
                    patterns.append(pattern)
            if patterns:
                groups.append(tuple(patterns))
        self.groups: tuple[tuple[Pattern, ...], ...] = tuple(groups)

    def test(self, task: Task) -> bool:
        if not self.groups:
            return True
        name = task.name.lower()
        return any(
            all((p.text in name) != p.negated for p in group) for group in self.groups
        )
