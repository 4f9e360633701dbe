from research_assistant.parsers.list_parser import parse_numbered_list
from research_assistant.parsers.outline_parser import OutlineParser

__all__ = ['parse_numbered_list', 'OutlineParser']
