"""npm package search engine — cached registry search and package details."""

from packsafe.engines.package_search.search import NpmPackage, NpmSearchService, SearchResult

__all__ = ["NpmPackage", "NpmSearchService", "SearchResult"]
