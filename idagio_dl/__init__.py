"""idagio-dl - album and concert downloader for the IDAGIO catalog."""

__version__ = "0.3.0"
