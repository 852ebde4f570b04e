"""payflow: card-in / M-Pesa-out transfer demo with mock payment gateways."""

__version__ = "0.1.0"
