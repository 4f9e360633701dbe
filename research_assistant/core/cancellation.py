import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar('T')


class OperationCancelledError(Exception):
	pass


class CancellationToken:
	"""Cooperative cancellation signal shared by every suspension point of a run.

	Awaiting through `run` races the awaitable against the signal: work that
	finishes first keeps its result, otherwise the in-flight call is cancelled
	and `OperationCancelledError` is raised to the caller.
	"""

	def __init__(self, parent: 'CancellationToken | None' = None):
		self._event = asyncio.Event()
		self._children: list[CancellationToken] = []
		if parent is not None:
			parent._children.append(self)
			if parent.is_cancelled:
				self.cancel()

	@property
	def is_cancelled(self) -> bool:
		return self._event.is_set()

	def cancel(self):
		if self._event.is_set():
			return
		self._event.set()
		for child in self._children:
			child.cancel()

	def linked(self) -> 'CancellationToken':
		return CancellationToken(parent=self)

	def raise_if_cancelled(self):
		if self.is_cancelled:
			raise OperationCancelledError('Operation cancelled')

	async def wait(self):
		await self._event.wait()

	async def run(self, awaitable: Awaitable[T]) -> T:
		if self.is_cancelled:
			# Close an un-started coroutine so it is not reported as never awaited
			close = getattr(awaitable, 'close', None)
			if callable(close):
				close()
			raise OperationCancelledError('Operation cancelled')

		work = asyncio.ensure_future(awaitable)
		waiter = asyncio.ensure_future(self._event.wait())
		try:
			done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
		except asyncio.CancelledError:
			work.cancel()
			raise
		finally:
			waiter.cancel()

		if work in done:
			return work.result()

		work.cancel()
		await asyncio.gather(work, return_exceptions=True)
		raise OperationCancelledError('Operation cancelled')

	async def sleep(self, seconds: float):
		await self.run(asyncio.sleep(seconds))
