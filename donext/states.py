"""Allowed status transitions for goals, partnerships, requests and project tasks."""

from __future__ import annotations

from donext.errors import InvalidTransitionError


class StateMachine:
    def __init__(self, name: str, transitions: dict[str, set[str]]):
        self.name = name
        self.transitions = transitions

    @property
    def states(self) -> set[str]:
        return set(self.transitions)

    def can_transition(self, current: str, target: str) -> bool:
        if current == target:
            return True
        return target in self.transitions.get(current, set())

    def check(self, current: str, target: str) -> str:
        """Return ``target`` if ``current -> target`` is allowed, else raise."""
        if target not in self.transitions:
            raise InvalidTransitionError(f"Unknown {self.name} status: {target}")
        if not self.can_transition(current, target):
            raise InvalidTransitionError(f"Cannot change {self.name} status from {current} to {target}")
        return target


GOAL_STATUS = StateMachine("goal", {
    "Active": {"Completed", "Archived"},
    "Completed": {"Active", "Archived"},
    "Archived": {"Active"},
})

REQUEST_STATUS = StateMachine("request", {
    "Pending": {"Accepted", "Rejected"},
    "Accepted": set(),
    "Rejected": set(),
})

PARTNERSHIP_STATUS = StateMachine("partnership", {
    "Active": {"Paused", "Ended"},
    "Paused": {"Active", "Ended"},
    "Ended": set(),
})

PROJECT_TASK_STATUS = StateMachine("task", {
    "Todo": {"InProgress"},
    "InProgress": {"Todo", "Review", "Completed"},
    "Review": {"InProgress", "Completed"},
    "Completed": {"InProgress"},
})
