"""Tests for name validation."""

import pytest

from stackweave.core.validation import (
    is_valid_branch_name,
    validate_branch_prefix,
    validate_task_id,
)


class TestValidateTaskId:
    """Tests for validate_task_id."""

    @pytest.mark.parametrize("task_id", ["a", "task-1", "auth.login_v2", "A1"])
    def test_valid_ids(self, task_id):
        validate_task_id(task_id)

    @pytest.mark.parametrize("task_id", ["", "-bad", ".hidden", "has space", "a/b", "x" * 65])
    def test_invalid_ids(self, task_id):
        with pytest.raises(ValueError):
            validate_task_id(task_id)


class TestBranchNames:
    """Tests for branch name rules."""

    @pytest.mark.parametrize("name", ["main", "stackweave/task-a", "feature/x-lq2k3f"])
    def test_valid(self, name):
        assert is_valid_branch_name(name)

    @pytest.mark.parametrize(
        "name", ["", "/x", "x/", "a..b", "a b", "a~1", "a:b", "x.lock", "@", "a@{1}"]
    )
    def test_invalid(self, name):
        assert not is_valid_branch_name(name)

    def test_prefix(self):
        validate_branch_prefix("stackweave/")
        validate_branch_prefix("")
        with pytest.raises(ValueError):
            validate_branch_prefix("bad prefix/")
