from lorevault.models.models import (
    Character,
    Page,
    PageFile,
    PageKnower,
    PageVersion,
    SecretCheck,
    SecretKnower,
)

__all__ = [
    "Character",
    "Page",
    "PageFile",
    "PageKnower",
    "PageVersion",
    "SecretCheck",
    "SecretKnower",
]
