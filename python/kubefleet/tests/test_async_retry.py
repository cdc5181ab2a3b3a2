"""Tests for the async retry decorator and command runner."""

from __future__ import annotations

import sys

import pytest

from kubefleet.utils.async_command_runner import CommandError, run_command
from kubefleet.utils.async_retry import async_retry


async def test_retries_until_success() -> None:
    attempts = []

    @async_retry(retries=3, delay=0, retry_on=(ValueError,))
    async def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ValueError("not yet")
        return "ok"

    assert await flaky() == "ok"
    assert len(attempts) == 3


async def test_gives_up_after_last_attempt() -> None:
    attempts = []

    @async_retry(retries=2, delay=0, retry_on=(ValueError,))
    async def broken() -> None:
        attempts.append(1)
        raise ValueError("always")

    with pytest.raises(ValueError):
        await broken()
    assert len(attempts) == 2


async def test_other_errors_are_not_retried() -> None:
    attempts = []

    @async_retry(retries=5, delay=0, retry_on=(ValueError,))
    async def broken() -> None:
        attempts.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await broken()
    assert len(attempts) == 1


async def test_run_command_returns_stdout() -> None:
    output = await run_command([sys.executable, "-c", "print(' hi ')"], sensitive=False)

    assert output == "hi"


async def test_run_command_failure_hides_sensitive_details() -> None:
    with pytest.raises(CommandError) as exc_info:
        await run_command([sys.executable, "-c", "import sys; sys.exit(3)"], retry_delay=0)

    assert exc_info.value.return_code == 3
    assert "Command:" not in str(exc_info.value)


async def test_run_command_missing_executable() -> None:
    with pytest.raises(CommandError):
        await run_command(["definitely-not-a-real-binary-kubefleet"])
