"""
Order and subscription workflows.

Each workflow is an explicit transition table. State is only ever changed
through ``apply_transition``/``transition_to``; a transition that is not
allowed from the entity's current state raises ``InvalidTransitionError``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

import structlog

from recurring_billing.billing.exceptions import InvalidTransitionError
from recurring_billing.billing.recurring.models import OrderState, SubscriptionState

logger = structlog.get_logger(__name__)

StateT = TypeVar("StateT", bound=Enum)


class _Stateful(Protocol):
    state: Any


@dataclass(frozen=True)
class Transition(Generic[StateT]):
    """Named transition from any of ``from_states`` to ``to_state``."""

    transition_id: str
    from_states: frozenset[StateT]
    to_state: StateT


class Workflow(Generic[StateT]):
    """Validated state machine over entities with a ``state`` attribute."""

    def __init__(self, workflow_id: str, transitions: list[Transition[StateT]]) -> None:
        self.workflow_id = workflow_id
        self._transitions = {t.transition_id: t for t in transitions}

    def get_transition(self, transition_id: str) -> Transition[StateT]:
        try:
            return self._transitions[transition_id]
        except KeyError:
            raise InvalidTransitionError(
                f"Unknown transition '{transition_id}' in workflow '{self.workflow_id}'",
                workflow=self.workflow_id,
                current_state="*",
                transition=transition_id,
            ) from None

    def allowed_transitions(self, state: StateT) -> list[Transition[StateT]]:
        return [t for t in self._transitions.values() if state in t.from_states]

    def can_apply(self, entity: _Stateful, transition_id: str) -> bool:
        transition = self._transitions.get(transition_id)
        return transition is not None and entity.state in transition.from_states

    def apply_transition(self, entity: _Stateful, transition_id: str) -> StateT:
        """Apply a named transition, returning the new state."""
        transition = self.get_transition(transition_id)
        current = entity.state
        if current not in transition.from_states:
            logger.error(
                "Invalid workflow transition",
                workflow=self.workflow_id,
                transition=transition_id,
                current_state=current.value,
            )
            raise InvalidTransitionError(
                f"Transition '{transition_id}' is not allowed from state '{current.value}'",
                workflow=self.workflow_id,
                current_state=current.value,
                transition=transition_id,
            )
        entity.state = transition.to_state
        return transition.to_state

    def transition_to(self, entity: _Stateful, target: StateT) -> StateT:
        """Apply whichever transition leads from the current state to ``target``."""
        current = entity.state
        for transition in self.allowed_transitions(current):
            if transition.to_state == target:
                return self.apply_transition(entity, transition.transition_id)
        raise InvalidTransitionError(
            f"No transition from '{current.value}' to '{target.value}'",
            workflow=self.workflow_id,
            current_state=current.value,
            transition=f"-> {target.value}",
        )


def build_order_workflow() -> Workflow[OrderState]:
    return Workflow(
        "recurring_order_default",
        [
            Transition("place", frozenset({OrderState.DRAFT}), OrderState.COMPLETED),
            Transition("cancel", frozenset({OrderState.DRAFT}), OrderState.CANCELED),
            Transition("mark_failed", frozenset({OrderState.DRAFT}), OrderState.FAILED),
        ],
    )


def build_subscription_workflow() -> Workflow[SubscriptionState]:
    S = SubscriptionState
    return Workflow(
        "subscription_default",
        [
            Transition("start_trial", frozenset({S.PENDING}), S.TRIALING),
            Transition("activate", frozenset({S.PENDING, S.TRIALING}), S.ACTIVE),
            Transition("mark_past_due", frozenset({S.ACTIVE}), S.PAST_DUE),
            Transition("reactivate", frozenset({S.PAST_DUE}), S.ACTIVE),
            Transition(
                "cancel", frozenset({S.PENDING, S.TRIALING, S.ACTIVE, S.PAST_DUE}), S.CANCELED
            ),
            Transition("expire", frozenset({S.ACTIVE, S.PAST_DUE}), S.EXPIRED),
        ],
    )


order_workflow = build_order_workflow()
subscription_workflow = build_subscription_workflow()


__all__ = [
    "Transition",
    "Workflow",
    "build_order_workflow",
    "build_subscription_workflow",
    "order_workflow",
    "subscription_workflow",
]
