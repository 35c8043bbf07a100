"""Tests for handler definition validation."""

import pytest

from relaybot.adapter import EventAdapter
from relaybot.definitions import (
    AdapterDefinition,
    CommandDefinition,
    DefinitionKind,
    JobDefinition,
)
from relaybot.exceptions import DefinitionError


async def noop(ctx):
    return None


def test_kinds_are_set_by_constructor():
    assert CommandDefinition("!a", [noop]).kind is DefinitionKind.COMMAND
    assert JobDefinition("j", "* * * * *", noop).kind is DefinitionKind.JOB
    assert AdapterDefinition("e", EventAdapter(), noop).kind is DefinitionKind.ADAPTER


def test_command_handlers_are_frozen_to_tuple():
    handlers = [noop]
    definition = CommandDefinition("!a", handlers)
    handlers.append(noop)
    assert definition.handlers == (noop,)


@pytest.mark.parametrize("command", ["", "two words", " !pad", "!tab\t"])
def test_command_must_be_one_word(command):
    with pytest.raises(DefinitionError):
        CommandDefinition(command, [noop])


def test_command_requires_handlers():
    with pytest.raises(DefinitionError, match="no handlers"):
        CommandDefinition("!a", [])


def test_job_rejects_invalid_cron():
    with pytest.raises(DefinitionError, match="Invalid cron"):
        JobDefinition("bad", "every tuesday", noop)


def test_names_must_not_be_empty():
    with pytest.raises(DefinitionError):
        JobDefinition("", "* * * * *", noop)
    with pytest.raises(DefinitionError):
        AdapterDefinition("", EventAdapter(), noop)
