from abc import ABC, abstractmethod

from autoapply.models import SearchPage


class PostingSource(ABC):
    @abstractmethod
    def search(self, query: str, page: int, *, only_with_salary: bool = False) -> SearchPage:
        """Fetch one page of recent postings for *query*; errors propagate."""
