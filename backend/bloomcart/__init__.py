"""BloomCart: sustainability scoring for shopping-extension product pages."""

__version__ = '1.0.0'
