"""Uniform wrappers around user callbacks invoked for command responses."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable


class CommandCallback(ABC):
    """A callable receiving ``(status, handle, data)`` for a command response."""

    @abstractmethod
    def __call__(self, status: int, handle: int, data: Any) -> None:
        """Deliver a response."""


class FunctionStatusCallback(CommandCallback):
    """Calls ``func(status, handle, data, client_data)``."""

    def __init__(self, func: Callable[..., Any] | None, client_data: Any = None) -> None:
        self.func = func
        self.client_data = client_data

    def __call__(self, status: int, handle: int, data: Any) -> None:
        if self.func is not None:
            self.func(status, handle, data, self.client_data)


def _as_byte(data: Any) -> int:
    if data is None:
        return 0
    if isinstance(data, (bytes, bytearray, memoryview)):
        return data[0] if len(data) else 0
    return int(data) & 0xFF


class ByteStatusCallback(CommandCallback):
    """Calls ``func(status, handle, byte, client_data)`` with a single-byte response.

    A missing response is delivered as 0; a byte string yields its first byte.
    """

    def __init__(self, func: Callable[..., Any] | None, client_data: Any = None) -> None:
        self.func = func
        self.client_data = client_data

    def __call__(self, status: int, handle: int, data: Any) -> None:
        if self.func is not None:
            self.func(status, handle, _as_byte(data), self.client_data)


class MessageCallback(CommandCallback):
    """Calls ``func(status, handle, data)`` without client data."""

    def __init__(self, func: Callable[..., Any] | None) -> None:
        self.func = func

    def __call__(self, status: int, handle: int, data: Any) -> None:
        if self.func is not None:
            self.func(status, handle, data)


def make_command_callback(
    func: Callable[..., Any] | None,
    client_data: Any = None,
    byte_response: bool = False,
) -> CommandCallback:
    """Wrap ``func`` so it receives the response followed by ``client_data``."""
    if byte_response:
        return ByteStatusCallback(func, client_data)
    return FunctionStatusCallback(func, client_data)


def make_message_callback(func: Callable[..., Any] | None) -> CommandCallback:
    """Wrap ``func`` so it receives only ``(status, handle, data)``."""
    return MessageCallback(func)