"""Shared API payloads: targeting context, plugin identity and paging."""

from typing import List

from pydantic import BaseModel, Field


class Context(BaseModel):
    """Cluster and namespace targeted by a request. Empty namespace means all."""

    cluster: str = ""
    namespace: str = ""


class Plugin(BaseModel):
    """Identity of the plugin serving a resource."""

    name: str
    version: str


class PaginationOptions(BaseModel):
    page_token: str = ""
    page_size: int = Field(default=0, ge=0)


class FilterOptions(BaseModel):
    query: str = ""
    categories: List[str] = Field(default_factory=list)
    repositories: List[str] = Field(default_factory=list)


class VersionReference(BaseModel):
    version: str = ""


class ReconciliationOptions(BaseModel):
    """Reconciliation settings of an installed package.

    interval is expressed in seconds.
    """

    interval: int = Field(default=0, ge=0)
    suspend: bool = False
    service_account_name: str = ""

