from .static_page_source import StaticOrderPageSource

__all__ = ["StaticOrderPageSource"]
