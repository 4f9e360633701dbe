import asyncio

from research_assistant.core.cancellation import CancellationToken


class AdmissionGate:
	"""Counting gate bounding how many section routines are in flight."""

	def __init__(self, limit: int):
		if limit < 1:
			raise ValueError('Admission gate limit must be a positive integer')
		self.limit = limit
		self._semaphore = asyncio.Semaphore(limit)
		self.active = 0
		self.peak = 0

	async def acquire(self, token: CancellationToken | None = None):
		if token is not None:
			await token.run(self._semaphore.acquire())
		else:
			await self._semaphore.acquire()

		self.active += 1
		self.peak = max(self.peak, self.active)

	def release(self):
		self.active -= 1
		self._semaphore.release()
