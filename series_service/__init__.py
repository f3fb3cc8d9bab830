# sensor observation time-series service: query resolution and value assembly

__version__ = "0.1.0"
