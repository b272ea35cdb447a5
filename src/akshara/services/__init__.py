"""Services for Akshara."""
