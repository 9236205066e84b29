from .base import PostingSource
from .headhunter import HeadHunterClient, describe_error, parse_posting

__all__ = ["PostingSource", "HeadHunterClient", "describe_error", "parse_posting"]
