"""Hosts the asyncio event loop on a thread of its own, so the GUI thread
never waits on the network.
"""
import asyncio
import logging as log
import threading


class AsyncRuntime(threading.Thread):

    def __init__(self):
        super(AsyncRuntime, self).__init__(name="reochat-async", daemon=True)
        self.loop = asyncio.new_event_loop()
        self._ready = threading.Event()

    def run(self):
        log.info("Running async runtime")
        asyncio.set_event_loop(self.loop)
        self.loop.call_soon(self._ready.set)
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    def wait_ready(self, timeout=None):
        return self._ready.wait(timeout)

    def submit(self, coro, on_done=None):
        """Schedule coro on the loop from any thread.

        Args:
            coro: The coroutine to run.
            on_done(callable): Called with the concurrent.futures.Future once
                coro finishes. Runs on the loop thread.
        Returns:
            concurrent.futures.Future
        """
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        if on_done:
            future.add_done_callback(on_done)
        return future

    def shutdown(self, cleanup=None, timeout=5):
        """Cancel every task, run cleanup, then stop the loop."""
        if not self.loop.is_running():
            return
        future = asyncio.run_coroutine_threadsafe(self._drain(cleanup), self.loop)
        try:
            future.result(timeout)
        except Exception as e:
            log.warning("Unclean shutdown: %r", e)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.join(timeout)

    async def _drain(self, cleanup):
        current = asyncio.current_task()
        tasks = [t for t in asyncio.all_tasks() if t is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if cleanup:
            await cleanup()
