"""
Short code generation strategies for new links.
Uses Strategy Pattern to allow different generation algorithms.
"""

import secrets
import string
from abc import ABC, abstractmethod

from shortlink_app.exceptions import ConflictError
from shortlink_app.repositories.link_repository import LinkRepository


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, link_id: int, links: LinkRepository) -> str:
        """
        Generate a short code.

        Args:
            link_id: The database ID of the new link
            links: Repository for strategies that need to check uniqueness

        Returns:
            A unique short code string
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random generation with a uniqueness check against the links table.

    Pros: Unpredictable codes
    Cons: Needs a DB round-trip per attempt
    """

    def __init__(self, length: int = 6, max_retries: int = 5):
        self.length = length
        self.max_retries = max_retries
        self.characters = string.ascii_letters + string.digits

    def generate(self, link_id: int, links: LinkRepository) -> str:
        for _ in range(self.max_retries):
            short_code = self._generate_random_string()
            if not links.short_code_exists(short_code):
                return short_code

        raise ConflictError(
            f"Could not generate unique short code after {self.max_retries} attempts"
        )

    def _generate_random_string(self) -> str:
        return ''.join(secrets.choice(self.characters) for _ in range(self.length))


class Base62ShortCodeStrategy(ShortCodeStrategy):
    """
    Base62 encoding of the salted auto-increment ID.

    Pros: No collisions, no DB queries
    Cons: Predictable if the salt is known
    """

    BASE62_CHARS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

    def __init__(self, salt: int = 1000, max_length: int = 6):
        self.salt = salt
        self.max_length = max_length

    def generate(self, link_id: int, links: LinkRepository) -> str:
        """
        Encode link_id + salt in Base62.

        Raises ValueError when the code would exceed max_length; truncating
        would produce duplicates.
        """
        encoded = self._base62_encode(link_id + self.salt)

        if len(encoded) > self.max_length:
            raise ValueError(
                f"Generated code '{encoded}' exceeds max length {self.max_length}. "
                f"Link ID: {link_id}. Increase salt or max_length."
            )

        return encoded

    def _base62_encode(self, number: int) -> str:
        if number == 0:
            return self.BASE62_CHARS[0]

        result = ""
        while number > 0:
            result = self.BASE62_CHARS[number % 62] + result
            number //= 62

        return result
