from research_assistant.core.cancellation import CancellationToken, OperationCancelledError
from research_assistant.models import ExecutionPlan, TaskStatus
from research_assistant.utils.logger import logger


def status_label(status: TaskStatus) -> str:
	return status.value.replace('_', ' ').title().replace(' ', '')


class ProgressReporter:
	"""Polls task statuses of a running plan and logs what changed."""

	def __init__(self, plan: ExecutionPlan, interval: float = 2.0):
		if interval <= 0:
			raise ValueError('Progress interval must be positive')
		self.plan = plan
		self.interval = interval
		self._last_seen: dict[str, TaskStatus] = {task_id: task.status for task_id, task in plan.tasks.items()}

	async def run(self, token: CancellationToken):
		while not token.is_cancelled:
			self.poll()
			try:
				await token.sleep(self.interval)
			except OperationCancelledError:
				break

		self.poll()

	def poll(self) -> list[str]:
		changes = []
		for task_id, task in self.plan.tasks.items():
			previous = self._last_seen.get(task_id)
			if previous == task.status:
				continue

			message = f"Section '{task.section_name}' is now {status_label(task.status)}"
			if previous is not None:
				message += f' (was {status_label(previous)})'
			if task.status == TaskStatus.FAILED and task.error_message:
				message += f': {task.error_message}'

			logger.info(message)
			changes.append(message)
			self._last_seen[task_id] = task.status

		if changes:
			snapshot = self.snapshot()
			logger.info(
				f'Progress: {snapshot["completed"]}/{snapshot["total_sections"]} sections '
				f'({snapshot["progress_percentage"]:.1f}%) | in progress {snapshot["in_progress"]}, '
				f'pending {snapshot["pending"]}, paused {snapshot["paused"]}, failed {snapshot["failed"]}'
			)

		return changes

	def snapshot(self) -> dict[str, int | float]:
		return self.plan.get_progress()
