"""Structured filter for listing and searching memories."""

from __future__ import annotations

from pydantic import BaseModel, Field

from core.project import project_tag


class MemoryQuery(BaseModel):
    """Filters combined with AND across fields.

    `tags` and `tag_prefixes` are OR-ed together: a memory matches when it
    carries any exact tag or any tag starting with one of the prefixes.
    `text` terms must all occur in the content.
    """

    type: str | None = None
    tags: list[str] = Field(default_factory=list)
    tag_prefixes: list[str] = Field(default_factory=list)
    project: str | None = None
    text: list[str] = Field(default_factory=list)

    @classmethod
    def from_filters(
        cls,
        type_filter: str | None = None,
        tag_filter: str | None = None,
        project: str | None = None,
    ) -> MemoryQuery:
        """Build a query from CLI-style filters, e.g. tag_filter="editor|lang*"."""
        tags: list[str] = []
        prefixes: list[str] = []
        for token in (tag_filter or "").split("|"):
            token = token.strip()
            if not token:
                continue
            if token.endswith("*"):
                prefixes.append(token[:-1])
            else:
                tags.append(token)
        return cls(type=type_filter or None, tags=tags, tag_prefixes=prefixes, project=project or None)

    @classmethod
    def for_text(cls, query: str) -> MemoryQuery:
        return cls(text=query.split())

    @property
    def project_tag(self) -> str | None:
        return project_tag(self.project) if self.project else None

    @property
    def has_tag_filter(self) -> bool:
        return bool(self.tags or self.tag_prefixes)
