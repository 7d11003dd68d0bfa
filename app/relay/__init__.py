"""Direct Line relay bot -- bridges a Bot Framework channel to a Direct Line bot."""

__version__ = "1.0.0"
