from __future__ import annotations


class PromoterError(Exception):
    """Base class for errors raised by gitops-promoter."""


class PayloadError(PromoterError):
    """A webhook payload failed signature validation or could not be parsed."""


class ConfigError(PromoterError):
    """In-repo configuration could not be loaded or parsed."""


class CommentTooLargeError(PromoterError):
    """A diff comment exceeds the size ceiling even in its concise form."""

    def __init__(self, component_path: str, size: int, max_size: int) -> None:
        super().__init__(
            f"Concise diff comment for {component_path} is {size} chars "
            f"(limit {max_size})"
        )
        self.component_path = component_path
        self.size = size
        self.max_size = max_size


class SignatureError(PayloadError):
    """The webhook signature header is missing or does not match the body."""


class DeadlineExceededError(PromoterError):
    """An event ran past its deadline."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"event deadline of {seconds}s exceeded")
        self.seconds = seconds
