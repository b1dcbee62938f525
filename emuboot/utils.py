"""
Shared Utilities Module
Common utility functions used across the application.
"""


def format_duration(seconds: float) -> str:
    """Format seconds to a short human readable string."""
    seconds = max(0.0, seconds)
    if seconds >= 3600:
        hours, rest = divmod(int(seconds), 3600)
        return f"{hours}h {rest // 60}m"
    elif seconds >= 60:
        minutes, rest = divmod(int(seconds), 60)
        return f"{minutes}m {rest}s"
    elif seconds >= 10:
        return f"{seconds:.0f}s"
    return f"{seconds:.1f}s"
