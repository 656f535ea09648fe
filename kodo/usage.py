from dataclasses import dataclass, fields


@dataclass
class Usage:
    """Token counts for one or more model requests. Cached prompt tokens are kept apart from `prompt_tokens`."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    cache_read_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "Usage") -> "Usage":
        combined = Usage(**{f.name: getattr(self, f.name) for f in fields(self)})
        combined += other
        return combined

    def __iadd__(self, other: "Usage") -> "Usage":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def to_dict(self) -> dict:
        return {
            "prompt": self.prompt_tokens,
            "completion": self.completion_tokens,
            "total": self.total_tokens,
            "cache_read": self.cache_read_tokens,
        }
