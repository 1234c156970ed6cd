"""shopdrop: order pricing and fulfillment for a local delivery marketplace."""

__version__ = "0.1.0"
