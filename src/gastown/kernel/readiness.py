"""Readiness detection for interactive agents hosted in a session.

A running process says nothing about whether the agent is ready for input
(it is also running while "thinking"), so readiness is inferred from the
visible pane text. Every wait here is bounded by an explicit timeout.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..contracts.v1 import RuntimeConfig, RuntimeTmuxConfig
from ..runners.base import SessionBackend
from . import constants
from .errors import GastownError, ReadinessTimeout
from .runtime import provider_for

logger = logging.getLogger("gastown.readiness")


def prompt_visible(pane_text: str, prefix: str) -> bool:
    marker = prefix.replace("\xa0", " ").strip()
    if not marker:
        return False
    for line in pane_text.splitlines():
        if line.replace("\xa0", " ").strip().startswith(marker):
            return True
    return False


def provider_ready_config(rc: Optional[RuntimeConfig]) -> RuntimeConfig:
    """Copy of `rc` with the provider's readiness defaults filled in."""
    if rc is None:
        return RuntimeConfig(
            provider="copilot",
            tmux=RuntimeTmuxConfig(
                ready_prompt_prefix=constants.COPILOT_READY_PROMPT_PREFIX,
                ready_delay_ms=constants.COPILOT_READY_DELAY_MS,
            ),
        )
    ready = rc.model_copy(deep=True)
    if ready.tmux is None:
        ready.tmux = RuntimeTmuxConfig()
    spec = provider_for(ready)
    if not ready.tmux.ready_prompt_prefix:
        ready.tmux.ready_prompt_prefix = (spec.ready_prompt_prefix if spec else "") or constants.COPILOT_READY_PROMPT_PREFIX
    if ready.tmux.ready_delay_ms == 0:
        ready.tmux.ready_delay_ms = (spec.ready_delay_ms if spec else 0) or constants.COPILOT_READY_DELAY_MS
    return ready


class ReadinessDetector:
    def __init__(
        self,
        backend: SessionBackend,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = 0.2,
        capture_lines: int = 50,
    ):
        self.backend = backend
        self._sleep = sleep
        self._clock = clock
        self._poll_interval = poll_interval
        self._capture_lines = capture_lines

    def sleep_ms(self, ms: int) -> None:
        if ms > 0:
            self._sleep(ms / 1000.0)

    def wait_for_ready(self, session: str, rc: Optional[RuntimeConfig], timeout: float) -> None:
        """Return once the ready marker is visible; raise ReadinessTimeout otherwise.

        Runtimes without a marker get their fixed delay, capped by `timeout`.
        """
        prefix = rc.ready_prompt_prefix if rc is not None else ""
        if not prefix:
            delay_ms = rc.ready_delay_ms if rc is not None else 0
            self.sleep_ms(min(delay_ms, int(timeout * 1000)))
            return

        deadline = self._clock() + timeout
        while True:
            try:
                text = self.backend.capture_pane(session, self._capture_lines)
            except GastownError as e:
                logger.debug("capture failed: %s", e, extra={"session": session})
                text = ""
            if prompt_visible(text, prefix):
                return
            if self._clock() >= deadline:
                raise ReadinessTimeout(f"timeout after {timeout:.0f}s waiting for prompt {prefix!r} in {session}")
            self._sleep(self._poll_interval)

    def wait_for_provider_ready(self, session: str, rc: Optional[RuntimeConfig], timeout: float) -> bool:
        """Provider-specific wait; a no-op unless the provider needs one.

        On timeout sleeps for at least the provider fallback floor. Returns
        True when the prompt was actually observed.
        """
        spec = provider_for(rc)
        if not session or spec is None or not spec.needs_ready_wait:
            return False
        ready = provider_ready_config(rc)
        try:
            self.wait_for_ready(session, ready, timeout)
            return True
        except ReadinessTimeout as e:
            delay = max(ready.ready_delay_ms, constants.COPILOT_FALLBACK_FLOOR_MS)
            logger.warning("%s; sleeping %dms", e, delay, extra={"session": session, "provider": spec.name})
            self.sleep_ms(delay)
            return False

    def sleep_for_ready_delay(self, rc: Optional[RuntimeConfig]) -> None:
        if rc is None:
            return
        self.sleep_ms(rc.ready_delay_ms)

    def wait_before_propulsion(self, session: str, rc: Optional[RuntimeConfig], timeout: float) -> bool:
        """Second readiness wait before the propulsion nudge.

        Prompt detection failure falls back to a fixed delay of at least
        PROPULSION_FALLBACK_FLOOR_MS regardless of the provider's own delay.
        """
        try:
            self.wait_for_ready(session, rc, timeout)
            return True
        except ReadinessTimeout as e:
            delay = constants.PROPULSION_FALLBACK_FLOOR_MS
            if rc is not None and rc.ready_delay_ms > 0:
                delay = max(rc.ready_delay_ms, delay)
            logger.warning("%s; sleeping %dms", e, delay, extra={"session": session})
            self.sleep_ms(delay)
            return False
