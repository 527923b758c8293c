"""Tests for the contextgroups exception hierarchy."""

from __future__ import annotations

import pytest

from contextgroups import (
    CascadeFailure,
    ConfigurationError,
    ContextGroupsError,
    GroupNotFoundError,
    HierarchyDepthError,
    InvalidInputError,
    ItemNotFoundError,
    NotFoundError,
    UnsupportedStrategyError,
)


class TestExceptionHierarchy:
    """Tests for exception classes."""

    def test_base_defaults(self) -> None:
        """Test the base error carries default code and message."""
        err = ContextGroupsError()
        assert err.code == "INTERNAL_ERROR"
        assert err.message == "An internal error occurred"
        assert err.details == {}

    def test_custom_message_and_details(self) -> None:
        """Test message, code and details overrides."""
        err = InvalidInputError("bad id", code="BAD_ID", value="abc")
        assert str(err) == "bad id"
        assert err.code == "BAD_ID"
        assert err.details == {"value": "abc"}

    def test_group_not_found(self) -> None:
        """Test GroupNotFoundError carries the group id."""
        err = GroupNotFoundError(7)
        assert isinstance(err, NotFoundError)
        assert err.group_id == 7
        assert err.code == "GROUP_NOT_FOUND"
        assert "7" in err.message
        assert err.details == {"group_id": 7}

    def test_item_not_found(self) -> None:
        """Test ItemNotFoundError carries the item id."""
        err = ItemNotFoundError(100, "gone")
        assert err.item_id == 100
        assert err.message == "gone"
        assert err.code == "ITEM_NOT_FOUND"

    def test_hierarchy_errors_are_configuration_errors(self) -> None:
        """Test resolution errors are caught as ConfigurationError."""
        assert issubclass(HierarchyDepthError, ConfigurationError)
        assert issubclass(UnsupportedStrategyError, ConfigurationError)
        with pytest.raises(ConfigurationError):
            raise HierarchyDepthError("cycle at 100")

    def test_cascade_failure_is_not_configuration_error(self) -> None:
        """Test CascadeFailure stays outside the fail-closed family."""
        assert not issubclass(CascadeFailure, ConfigurationError)
        assert issubclass(CascadeFailure, ContextGroupsError)

    @pytest.mark.parametrize(
        "code,cls",
        [
            ("INTERNAL_ERROR", ContextGroupsError),
            ("NOT_FOUND", NotFoundError),
            ("GROUP_NOT_FOUND", GroupNotFoundError),
            ("ITEM_NOT_FOUND", ItemNotFoundError),
            ("INVALID_INPUT", InvalidInputError),
            ("CONFIGURATION_ERROR", ConfigurationError),
            ("HIERARCHY_DEPTH_ERROR", HierarchyDepthError),
            ("UNSUPPORTED_STRATEGY", UnsupportedStrategyError),
            ("CASCADE_FAILURE", CascadeFailure),
        ],
    )
    def test_stable_codes(self, code: str, cls: type) -> None:
        """Test every error class carries its stable code."""
        assert cls.code == code
