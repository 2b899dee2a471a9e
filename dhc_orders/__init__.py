"""Delhi High Court case-status scraper: find a case, list its orders, merge the PDFs."""

__version__ = "0.1.0"
