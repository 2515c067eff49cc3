"""Membership queries against a stored descriptor."""

from __future__ import annotations

from typing import Iterable, Optional

from .exceptions import ResolutionError
from .models import ContainsFileResult, FilterFilesResult, ProgramDescriptor, merge_diagnostics
from .resolver import ScopeResolver


def contains_file(
    resolver: ScopeResolver,
    descriptor: ProgramDescriptor,
    file_url: str,
    allow_interactive: Optional[bool] = None,
) -> ContainsFileResult:
    """Check whether ``file_url`` belongs to the scope ``descriptor`` describes.

    Raises:
        ResolutionError: the url is unknown or names a directory
    """
    resolved = resolver.resolve(descriptor, allow_interactive=allow_interactive)
    workspace = resolver.workspace
    file = workspace.find_file(file_url)
    if file is None:
        if workspace.is_directory(file_url):
            raise ResolutionError(f"URL '{file_url}' points to a directory, not a file.")
        raise ResolutionError(f"File URL '{file_url}' not found.")
    return ContainsFileResult(
        file_url=file_url,
        matches=resolved.contains(file),
        scope_display_name=resolved.display_name,
        shape=resolved.shape,
        diagnostics=merge_diagnostics(descriptor.diagnostics, resolved.diagnostics),
    )


def filter_files(
    resolver: ScopeResolver,
    descriptor: ProgramDescriptor,
    file_urls: Iterable[str],
    allow_interactive: Optional[bool] = None,
) -> FilterFilesResult:
    """Split ``file_urls`` into matched, excluded and missing urls.

    Unknown urls and directories are reported as missing with a diagnostic.
    """
    resolved = resolver.resolve(descriptor, allow_interactive=allow_interactive)
    workspace = resolver.workspace
    matched: list[str] = []
    excluded: list[str] = []
    missing: list[str] = []
    diagnostics: list[str] = []

    for url in file_urls:
        file = workspace.find_file(url)
        if file is None:
            missing.append(url)
            if workspace.is_directory(url):
                diagnostics.append(f"URL '{url}' points to a directory and was skipped.")
            else:
                diagnostics.append(f"File URL '{url}' not found.")
        elif resolved.contains(file):
            matched.append(url)
        else:
            excluded.append(url)

    return FilterFilesResult(
        scope_display_name=resolved.display_name,
        shape=resolved.shape,
        matched_file_urls=matched,
        excluded_file_urls=excluded,
        missing_file_urls=missing,
        diagnostics=merge_diagnostics(descriptor.diagnostics, resolved.diagnostics, diagnostics),
    )
