"""On-call alert service: find who is on call and ring them."""

__version__ = "0.1.0"
