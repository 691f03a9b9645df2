"""Tests for order and subscription workflows."""

import pytest

from recurring_billing.billing.exceptions import InvalidTransitionError, WorkflowError
from recurring_billing.billing.recurring.models import OrderState, SubscriptionState
from recurring_billing.billing.recurring.workflow import (
    build_order_workflow,
    order_workflow,
    subscription_workflow,
)

pytestmark = pytest.mark.unit


class _Entity:
    def __init__(self, state):
        self.state = state


class TestOrderWorkflow:
    """Test the recurring order transition table."""

    @pytest.mark.parametrize(
        ("transition", "target"),
        [
            ("place", OrderState.COMPLETED),
            ("cancel", OrderState.CANCELED),
            ("mark_failed", OrderState.FAILED),
        ],
    )
    def test_transitions_from_draft(self, transition, target):
        order = _Entity(OrderState.DRAFT)

        assert order_workflow.apply_transition(order, transition) == target
        assert order.state == target

    @pytest.mark.parametrize(
        "state", [OrderState.COMPLETED, OrderState.CANCELED, OrderState.FAILED]
    )
    def test_terminal_states(self, state):
        order = _Entity(state)

        assert order_workflow.allowed_transitions(state) == []
        with pytest.raises(InvalidTransitionError) as exc_info:
            order_workflow.apply_transition(order, "place")

        assert order.state == state
        assert exc_info.value.context["current_state"] == state.value
        assert exc_info.value.context["transition"] == "place"

    def test_unknown_transition(self):
        with pytest.raises(InvalidTransitionError, match="Unknown transition"):
            order_workflow.apply_transition(_Entity(OrderState.DRAFT), "refund")

    def test_can_apply(self):
        assert order_workflow.can_apply(_Entity(OrderState.DRAFT), "place")
        assert not order_workflow.can_apply(_Entity(OrderState.COMPLETED), "place")
        assert not order_workflow.can_apply(_Entity(OrderState.DRAFT), "refund")

    def test_invalid_transition_is_workflow_error(self):
        with pytest.raises(WorkflowError):
            build_order_workflow().apply_transition(_Entity(OrderState.FAILED), "cancel")


class TestSubscriptionWorkflow:
    """Test the subscription transition table."""

    @pytest.mark.parametrize(
        ("start", "transition", "target"),
        [
            (SubscriptionState.PENDING, "start_trial", SubscriptionState.TRIALING),
            (SubscriptionState.PENDING, "activate", SubscriptionState.ACTIVE),
            (SubscriptionState.TRIALING, "activate", SubscriptionState.ACTIVE),
            (SubscriptionState.ACTIVE, "mark_past_due", SubscriptionState.PAST_DUE),
            (SubscriptionState.PAST_DUE, "reactivate", SubscriptionState.ACTIVE),
            (SubscriptionState.TRIALING, "cancel", SubscriptionState.CANCELED),
            (SubscriptionState.PAST_DUE, "cancel", SubscriptionState.CANCELED),
            (SubscriptionState.ACTIVE, "expire", SubscriptionState.EXPIRED),
        ],
    )
    def test_allowed(self, start, transition, target):
        subscription = _Entity(start)

        subscription_workflow.apply_transition(subscription, transition)

        assert subscription.state == target

    @pytest.mark.parametrize(
        ("start", "transition"),
        [
            (SubscriptionState.CANCELED, "activate"),
            (SubscriptionState.EXPIRED, "cancel"),
            (SubscriptionState.ACTIVE, "start_trial"),
            (SubscriptionState.PENDING, "expire"),
        ],
    )
    def test_rejected(self, start, transition):
        with pytest.raises(InvalidTransitionError):
            subscription_workflow.apply_transition(_Entity(start), transition)

    def test_transition_to_resolves_transition(self):
        subscription = _Entity(SubscriptionState.ACTIVE)

        subscription_workflow.transition_to(subscription, SubscriptionState.PAST_DUE)

        assert subscription.state == SubscriptionState.PAST_DUE

    def test_transition_to_unreachable_state(self):
        subscription = _Entity(SubscriptionState.ACTIVE)

        with pytest.raises(InvalidTransitionError, match="No transition from 'active'"):
            subscription_workflow.transition_to(subscription, SubscriptionState.PENDING)

        assert subscription.state == SubscriptionState.ACTIVE
