"""
Tracked Changes - change groups and their accept/reject state machine.

A TrackedDocument is the ordered node sequence produced from one
(original, edited) pair: unchanged TextNodes alternating with ChangeGroups.
Each group starts pending and moves once to accepted or rejected. Pending
groups display their edited fragment, so clean text before any decision is
the edited text.

Rendering lives in ``tracked_render``; this module has no UI concerns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from diff_engine import ChangeRun, diff_words, group_parts

logger = logging.getLogger(__name__)


class ChangeState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ChangeKind(str, Enum):
    INSERTION = "insertion"
    DELETION = "deletion"
    REPLACEMENT = "replacement"


class ChangeTransitionError(ValueError):
    """Raised when a resolved group is asked to move to the other terminal state."""


@dataclass(frozen=True)
class TextNode:
    """Unchanged text, emitted verbatim."""

    text: str


@dataclass
class ChangeGroup:
    """
    One independently resolvable change.

    ``resolved_text`` is set exactly when the state is not pending: the edited
    fragment once accepted, the original fragment once rejected.
    """

    id: str
    original_fragment: str
    edited_fragment: str
    state: ChangeState = ChangeState.PENDING
    resolved_text: Optional[str] = None

    @property
    def kind(self) -> ChangeKind:
        if not self.original_fragment:
            return ChangeKind.INSERTION
        if not self.edited_fragment:
            return ChangeKind.DELETION
        return ChangeKind.REPLACEMENT

    @property
    def is_pending(self) -> bool:
        return self.state is ChangeState.PENDING

    @property
    def display_text(self) -> str:
        """Resolved text, or the edited fragment while pending."""
        return self.edited_fragment if self.resolved_text is None else self.resolved_text

    def accept(self) -> "ChangeGroup":
        self._transition(ChangeState.ACCEPTED, self.edited_fragment)
        return self

    def reject(self) -> "ChangeGroup":
        self._transition(ChangeState.REJECTED, self.original_fragment)
        return self

    def _transition(self, target: ChangeState, resolved: str):
        if self.state is target:
            return
        if self.state is not ChangeState.PENDING:
            raise ChangeTransitionError(
                f"Change {self.id} is already {self.state.value}; re-diff to change the decision"
            )
        self.state = target
        self.resolved_text = resolved

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "original_fragment": self.original_fragment,
            "edited_fragment": self.edited_fragment,
            "state": self.state.value,
            "resolved_text": self.resolved_text,
        }


Node = Union[TextNode, ChangeGroup]


class TrackedDocument:
    """Ordered sequence of text nodes and change groups for one text pair."""

    def __init__(self, nodes: List[Node]):
        self.nodes = nodes
        self._groups: Dict[str, ChangeGroup] = {
            node.id: node for node in nodes if isinstance(node, ChangeGroup)
        }

    @classmethod
    def from_texts(cls, original: str, edited: str) -> "TrackedDocument":
        """Diff the pair and build a fresh, fully pending node sequence."""
        nodes: List[Node] = []
        counter = 0
        for run in group_parts(diff_words(original, edited)):
            if isinstance(run, ChangeRun):
                counter += 1
                nodes.append(ChangeGroup(id=f"change-{counter}", original_fragment=run.original, edited_fragment=run.edited))
            else:
                nodes.append(TextNode(run.text))
        logger.debug("Built tracked document with %d change groups", counter)
        return cls(nodes)

    @property
    def groups(self) -> List[ChangeGroup]:
        return list(self._groups.values())

    def get(self, group_id: str) -> ChangeGroup:
        try:
            return self._groups[group_id]
        except KeyError:
            raise KeyError(f"Unknown change group '{group_id}'") from None

    def accept(self, group_id: str) -> ChangeGroup:
        return self.get(group_id).accept()

    def reject(self, group_id: str) -> ChangeGroup:
        return self.get(group_id).reject()

    def accept_all(self) -> int:
        """Accept every pending group; returns how many changed state."""
        pending = [group for group in self._groups.values() if group.is_pending]
        for group in pending:
            group.accept()
        return len(pending)

    def reject_all(self) -> int:
        """Reject every pending group; returns how many changed state."""
        pending = [group for group in self._groups.values() if group.is_pending]
        for group in pending:
            group.reject()
        return len(pending)

    def clean_text(self) -> str:
        """Current text: unchanged nodes verbatim, groups resolved or optimistic."""
        return "".join(
            node.display_text if isinstance(node, ChangeGroup) else node.text
            for node in self.nodes
        )

    def original_text(self) -> str:
        return "".join(
            node.original_fragment if isinstance(node, ChangeGroup) else node.text
            for node in self.nodes
        )

    def edited_text(self) -> str:
        return "".join(
            node.edited_fragment if isinstance(node, ChangeGroup) else node.text
            for node in self.nodes
        )

    @property
    def change_count(self) -> int:
        return len(self._groups)

    @property
    def pending_count(self) -> int:
        return sum(1 for group in self._groups.values() if group.is_pending)

    @property
    def is_resolved(self) -> bool:
        return self.pending_count == 0

    def summary(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in ChangeState}
        for group in self._groups.values():
            counts[group.state.value] += 1
        counts["total"] = len(self._groups)
        return counts
