"""Tests for request payload construction."""

from __future__ import annotations

import logging

import pytest

from hook_operator.builder import build_create_request, build_update_request, changed_fields
from hook_operator.models import LifecycleHookSpec


def _spec(**overrides: object) -> LifecycleHookSpec:
    fields: dict[str, object] = {
        "scaling_group_id": "asg-1",
        "lifecycle_transition": "SCALE_OUT",
    }
    fields.update(overrides)
    return LifecycleHookSpec(**fields)


class TestBuildCreateRequest:
    """Tests for create payloads."""

    def test_required_fields_only(self) -> None:
        """Test that unset optional fields are omitted."""
        assert build_create_request(_spec()) == {
            "scalingGroupId": "asg-1",
            "lifecycleTransition": "SCALE_OUT",
        }

    def test_all_fields(self) -> None:
        """Test that explicitly set fields are sent with wire values."""
        request = build_create_request(
            _spec(
                name="drain-hook",
                heartbeat_timeout=300,
                default_result="ABANDON",
                notification_arn="arn:topic",
                notification_metadata="{}",
            )
        )

        assert request == {
            "scalingGroupId": "asg-1",
            "lifecycleTransition": "SCALE_OUT",
            "lifecycleHookName": "drain-hook",
            "heartbeatTimeout": 300,
            "defaultResult": "ABANDON",
            "notificationArn": "arn:topic",
            "notificationMetadata": "{}",
        }

    def test_empty_strings_omitted(self) -> None:
        """Test that empty attributes are left to control plane defaults on create."""
        request = build_create_request(_spec(notification_arn="", notification_metadata=""))
        assert "notificationArn" not in request
        assert "notificationMetadata" not in request

    def test_non_positive_timeout_omitted(self) -> None:
        """Test that a non-positive sentinel is never sent."""
        spec = LifecycleHookSpec.model_construct(
            scaling_group_id="asg-1",
            name=None,
            lifecycle_transition="SCALE_OUT",
            heartbeat_timeout=0,
            default_result=None,
            notification_arn=None,
            notification_metadata=None,
        )
        assert "heartbeatTimeout" not in build_create_request(spec)

    def test_pure(self) -> None:
        """Test that building does not modify the spec."""
        spec = _spec(heartbeat_timeout=60)
        before = spec.model_dump()
        build_create_request(spec)
        assert spec.model_dump() == before


class TestBuildUpdateRequest:
    """Tests for minimal-diff update payloads."""

    @pytest.fixture
    def last_known(self) -> LifecycleHookSpec:
        return _spec(
            name="lifecycle-hook-lh-0001",
            heartbeat_timeout=600,
            default_result="CONTINUE",
            notification_arn="arn:default",
            notification_metadata="",
        )

    def test_no_changes(self, last_known: LifecycleHookSpec) -> None:
        """Test that an unchanged spec yields an empty payload."""
        assert build_update_request(_spec(), last_known) == {}

    def test_single_change(self, last_known: LifecycleHookSpec) -> None:
        """Test that only the changed field is included."""
        assert build_update_request(_spec(heartbeat_timeout=900), last_known) == {
            "heartbeatTimeout": 900
        }

    def test_subset_of_changes(self, last_known: LifecycleHookSpec) -> None:
        """Test that exactly the changed subset is included."""
        desired = _spec(
            heartbeat_timeout=600,  # unchanged
            default_result="ABANDON",
            notification_metadata="drain",
        )
        assert build_update_request(desired, last_known) == {
            "defaultResult": "ABANDON",
            "notificationMetadata": "drain",
        }

    def test_clearing_attribute(self, last_known: LifecycleHookSpec) -> None:
        """Test that an empty string is sent to clear an attribute."""
        assert build_update_request(_spec(notification_arn=""), last_known) == {
            "notificationArn": ""
        }

    def test_immutable_fields_never_included(
        self, last_known: LifecycleHookSpec, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that changed immutable fields are dropped from the payload."""
        desired = _spec(
            scaling_group_id="asg-2",
            name="other-name",
            lifecycle_transition="SCALE_IN",
            heartbeat_timeout=120,
        )

        with caplog.at_level(logging.WARNING):
            request = build_update_request(desired, last_known)

        assert request == {"heartbeatTimeout": 120}
        assert "Immutable fields changed" in caplog.text

    def test_changed_fields(self, last_known: LifecycleHookSpec) -> None:
        """Test the list of changed mutable fields."""
        desired = _spec(scaling_group_id="asg-9", default_result="ABANDON")
        assert changed_fields(desired, last_known) == ["default_result"]
