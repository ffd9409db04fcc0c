"""Tests for run ID context management."""

import uuid

import pytest

from libs.common.logging.context import (
    RunContext,
    clear_run_id,
    generate_run_id,
    get_run_id,
    set_run_id,
)


def test_generate_run_id_is_uuid4() -> None:
    run_id = generate_run_id()

    assert uuid.UUID(run_id).version == 4
    assert generate_run_id() != run_id


def test_set_get_and_clear_run_id() -> None:
    set_run_id("run-1")
    assert get_run_id() == "run-1"

    clear_run_id()
    assert get_run_id() is None


def test_empty_run_id_is_rejected() -> None:
    with pytest.raises(ValueError, match="cannot be empty"):
        set_run_id("")


class TestRunContext:
    def test_sets_and_clears_run_id(self) -> None:
        with RunContext("run-1") as run_id:
            assert run_id == "run-1"
            assert get_run_id() == "run-1"

        assert get_run_id() is None

    def test_generates_run_id_when_absent(self) -> None:
        with RunContext() as run_id:
            assert get_run_id() == run_id

        assert run_id

    def test_nested_contexts_restore_outer_run_id(self) -> None:
        with RunContext("outer"):
            with RunContext("inner"):
                assert get_run_id() == "inner"
            assert get_run_id() == "outer"

    def test_run_id_restored_after_exception(self) -> None:
        set_run_id("outer")

        with pytest.raises(RuntimeError):
            with RunContext("inner"):
                raise RuntimeError("boom")

        assert get_run_id() == "outer"
