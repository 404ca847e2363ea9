"""Rejections the coordinator turns into ``error`` messages for the sender."""

from __future__ import annotations


class GomokuError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProtocolError(GomokuError):
    """Inbound record is unparsable or structurally invalid."""


class StateViolation(GomokuError):
    """Request breaks a room rule: wrong turn, occupied cell, finished game..."""


class NotFound(GomokuError):
    """Referenced room is absent, or the connection has none yet."""
