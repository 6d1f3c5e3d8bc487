"""Customer retention and personalized offer engine for the Kosmospace marketplace."""

__version__ = "0.1.0"
