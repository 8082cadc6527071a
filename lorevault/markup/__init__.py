from lorevault.markup.codenames import CodenameResult, assign_codenames
from lorevault.markup.files import MediaKind, fetch_svg, format_size, media_kind, render_files
from lorevault.markup.links import Category, LinkRef, LinkResult, extract_categories, render_links
from lorevault.markup.markdown import render_markdown
from lorevault.markup.pipeline import PageRenderer, RenderConfig, RenderedPage, prepare_body
from lorevault.markup.secrets import (
    POV, Secret, Viewer,
    default_codenamer, is_in_secret, random_codenamer, redact, shorthand_to_tags, unwrap_secrets,
)
from lorevault.markup.spans import SpanMatch, extract_blocks, match_all, restore_blocks
from lorevault.markup.store import (
    BlobStore, CategoryMembers, FileInfo, PageRecord, PageStore, SecretState, bounded,
)
from lorevault.markup.tags import render_tags
from lorevault.markup.templates import (
    TemplateEngine, TemplateInstance, TemplateParams, TemplateUsage,
    parse_instance, parse_instances, parse_params,
)
from lorevault.markup.typography import smarten

__all__ = [
    "CodenameResult", "assign_codenames",
    "MediaKind", "fetch_svg", "format_size", "media_kind", "render_files",
    "Category", "LinkRef", "LinkResult", "extract_categories", "render_links",
    "render_markdown",
    "PageRenderer", "RenderConfig", "RenderedPage", "prepare_body",
    "POV", "Secret", "Viewer",
    "default_codenamer", "is_in_secret", "random_codenamer", "redact", "shorthand_to_tags",
    "unwrap_secrets",
    "SpanMatch", "extract_blocks", "match_all", "restore_blocks",
    "BlobStore", "CategoryMembers", "FileInfo", "PageRecord", "PageStore", "SecretState", "bounded",
    "render_tags",
    "TemplateEngine", "TemplateInstance", "TemplateParams", "TemplateUsage",
    "parse_instance", "parse_instances", "parse_params",
    "smarten",
]
