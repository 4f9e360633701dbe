import re

# "1. item", "2) item", "- item", "* item"
LIST_ITEM_PATTERN = re.compile(r'^(?:\d+[.)]|[-*•])\s+(.+)$')


def parse_numbered_list(text: str | None, limit: int | None = None) -> list[str]:
	"""Extract list items from LLM output.

	Lines without a leading ordinal or bullet marker are discarded. Bad input
	yields an empty list, never an exception.
	"""
	if not text:
		return []

	items = []
	for line in text.splitlines():
		match = LIST_ITEM_PATTERN.match(line.strip())
		if not match:
			continue

		item = match.group(1).strip().strip('*').strip().strip('"').strip()
		if item:
			items.append(item)

	if limit is not None:
		return items[: max(limit, 0)]
	return items
