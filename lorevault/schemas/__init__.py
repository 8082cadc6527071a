from lorevault.schemas.schemas import (
    OKResponse,
    FileSpec, PageSave, PageSaveResponse, PageSummary,
    LinkOut, CategoryOut, SecretOut, CategoryMembersOut,
    RenderRequest, RevealRequest, PageKnowerRequest, RenderedPageResponse,
    TemplateUsageOut,
)

__all__ = [
    "OKResponse",
    "FileSpec", "PageSave", "PageSaveResponse", "PageSummary",
    "LinkOut", "CategoryOut", "SecretOut", "CategoryMembersOut",
    "RenderRequest", "RevealRequest", "PageKnowerRequest", "RenderedPageResponse",
    "TemplateUsageOut",
]
