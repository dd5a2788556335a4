"""
Exceptions raised by booking lookup implementations.
"""


class BookingLookupError(Exception):
    """
    Raised when a booking store cannot be queried.

    An empty result is not an error; lookups return an empty list when no
    booking matches.
    """

    pass
