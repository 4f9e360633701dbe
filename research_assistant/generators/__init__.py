from .section import SectionGenerator, first_paragraph

__all__ = ['SectionGenerator', 'first_paragraph']
