from .match import Match

__all__ = ["Match"]
