"""Tests for mailgate.shutdown."""

from __future__ import annotations

import asyncio
import os
import signal
from unittest.mock import patch

import pytest

from mailgate.shutdown import install_signal_handlers


class TestInstallSignalHandlers:
    @pytest.mark.asyncio
    async def test_sigterm_sets_event(self):
        event = asyncio.Event()
        remove = install_signal_handlers(event)

        os.kill(os.getpid(), signal.SIGTERM)
        # The loop needs an I/O poll cycle to read the signal self-pipe.
        await asyncio.sleep(0.05)

        assert event.is_set()
        remove()

    @pytest.mark.asyncio
    async def test_repeated_signal_logged_as_already_stopping(self):
        event = asyncio.Event()

        with patch("mailgate.shutdown.logger") as mock_logger:
            remove = install_signal_handlers(event)
            for _ in range(2):
                os.kill(os.getpid(), signal.SIGINT)
                await asyncio.sleep(0.05)
            remove()

        assert event.is_set()
        mock_logger.info.assert_called_once_with("gateway_shutdown_requested", signal="SIGINT")
        assert mock_logger.warning.call_args[0][0] == "gateway_already_stopping"
        assert mock_logger.warning.call_args[1]["signals_received"] == 2

    @pytest.mark.asyncio
    async def test_remove_uninstalls_handlers(self):
        remove = install_signal_handlers(asyncio.Event())
        loop = asyncio.get_running_loop()

        remove()

        assert loop.remove_signal_handler(signal.SIGTERM) is False
        assert loop.remove_signal_handler(signal.SIGINT) is False

    @pytest.mark.asyncio
    async def test_custom_signal_set(self):
        event = asyncio.Event()
        remove = install_signal_handlers(event, signals=(signal.SIGUSR1,))
        loop = asyncio.get_running_loop()

        os.kill(os.getpid(), signal.SIGUSR1)
        await asyncio.sleep(0.05)

        assert event.is_set()
        assert loop.remove_signal_handler(signal.SIGTERM) is False
        remove()
