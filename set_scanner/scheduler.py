"""Auto-scan loop: run a scan cycle every ``scan.interval_seconds``.

Typical usage via the CLI::

    set-scanner watch --interval 60

Or import directly::

    scanner = AutoScanner(runner, params, symbols, interval_seconds=60)
    asyncio.run(scanner.start())   # returns on Ctrl-C / SIGTERM

A failing cycle (anything other than cancellation) is logged and the loop
carries on with the next one. On shutdown, pending notifications are
drained before ``start()`` returns.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import signal
from typing import Callable, Optional, Sequence

from set_scanner.models.scan import ScanParams
from set_scanner.pipeline.scan_cycle import ScanCycleRunner, ScanResult

log = logging.getLogger(__name__)


class AutoScanner:
    """Repeats ``ScanCycleRunner.run()`` on a fixed interval.

    Parameters
    ----------
    runner:
        The cycle runner (owns the ledger, alerts and dispatcher).
    params:
        Filters for every cycle.
    symbols:
        Universe to scan.
    interval_seconds:
        Pause between the end of one cycle and the start of the next.
    max_cycles:
        Stop after this many cycles (``None`` = run until stopped).
    on_result:
        Called with every completed ``ScanResult`` (the CLI prints it).
    """

    def __init__(
        self,
        runner: ScanCycleRunner,
        params: ScanParams,
        symbols: Sequence[str],
        interval_seconds: float = 60.0,
        max_cycles: Optional[int] = None,
        on_result: Optional[Callable[[ScanResult], None]] = None,
    ) -> None:
        self.runner = runner
        self.params = params
        self.symbols = list(symbols)
        self.interval_seconds = interval_seconds
        self.max_cycles = max_cycles
        self.on_result = on_result
        self.cycles_run = 0
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    async def run_once(self) -> Optional[ScanResult]:
        """Run one cycle; ``None`` when the cycle failed. Failed cycles still count."""
        self.cycles_run += 1
        try:
            result = await self.runner.run(self.params, self.symbols)
        except Exception as exc:
            log.error("Scan cycle failed: %s", exc, exc_info=True)
            return None
        if result.completed and self.on_result is not None:
            self.on_result(result)
        return result

    async def start(self, install_signal_handlers: bool = True) -> None:
        """Loop until ``stop()``, a signal, or ``max_cycles``."""
        if install_signal_handlers:
            self._install_signal_handlers()

        log.info(
            "Auto-scan started.  market=%s  symbols=%d  interval=%.0fs",
            self.params.market, len(self.symbols), self.interval_seconds,
        )
        try:
            while not self._stop.is_set():
                await self.run_once()
                if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                    break
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.runner.wait_for_notifications()
            log.info("Auto-scan stopped after %d cycle(s).", self.cycles_run)

    def _install_signal_handlers(self) -> None:
        if platform.system() == "Windows":
            return
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._on_signal, signum)

    def _on_signal(self, signum: int) -> None:
        log.info("Signal %d received; stopping auto-scan.", signum)
        self.stop()
