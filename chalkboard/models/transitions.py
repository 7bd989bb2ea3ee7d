"""
Status transition tables shared by the stateful models
"""

from enum import Enum
from typing import Dict, Iterable, List

from chalkboard.core.errors import InvalidTransitionError


class TransitionTable:
    """Legal status moves for one entity, the single place they are decided"""

    def __init__(self, entity: str, transitions: Dict[Enum, Iterable[Enum]]):
        self.entity = entity
        self._transitions = {state: frozenset(targets) for state, targets in transitions.items()}

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return target in self._transitions.get(current, frozenset())

    def check(self, current: Enum, target: Enum) -> None:
        if not self.can_transition(current, target):
            raise InvalidTransitionError(self.entity, current, target)

    def sources(self, target: Enum) -> List[Enum]:
        """States from which ``target`` may be reached, for guarded bulk updates"""
        return [state for state, targets in self._transitions.items() if target in targets]

    def is_terminal(self, state: Enum) -> bool:
        return not self._transitions.get(state)
