"""
Request Bodies

Pydantic models for the JSON bodies the thought routes accept. Fields are
deliberately loose: content rules and presentation defaults are applied by
the thought service, which returns friendlier errors than schema validation.
"""

from pydantic import BaseModel


class ThoughtCreate(BaseModel):
    content: str | None = None
    font: str | None = None
    category: str | None = None
    color: str | None = None


class ThoughtUpdate(BaseModel):
    content: str | None = None
