"""luxedetails: a local personal-details dashboard for the command line."""

__version__ = "0.1.0"
