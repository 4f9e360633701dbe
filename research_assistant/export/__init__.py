from .markdown_exporter import MarkdownExporter

__all__ = ['MarkdownExporter']
