from __future__ import annotations


class SimulatorError(Exception):
    """Base error for the conversation simulator."""


class RemoteCallError(SimulatorError):
    """The text generator could not be reached or answered with an error."""


class MalformedPayloadError(RemoteCallError):
    """The text generator answered, but not with usable text."""


class PersistenceError(SimulatorError):
    """A conversation store could not be read or written."""
