"""Report formatting, export and charts."""
