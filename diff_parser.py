"""Unified diff helpers: line splitting, diff building and patch parsing."""

import difflib
import logging
from dataclasses import dataclass, field

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffLine:
    """One line of diff content with its marker stripped."""

    content: str
    line_number: int = 0  # not tracked; always 0
    block: int = 0  # run of consecutive added lines this line belongs to


@dataclass
class DiffLines:
    """Diff content split by line kind, in original order."""

    added: list[DiffLine] = field(default_factory=list)
    removed: list[DiffLine] = field(default_factory=list)
    context: list[DiffLine] = field(default_factory=list)


def split_diff_lines(diff_text: str | None) -> DiffLines:
    """
    Split raw unified diff text into added, removed and context lines.

    ``+++``/``---`` file headers are never added or removed lines; ``@@``
    hunk headers and ``diff`` lines are dropped. Added lines carry a ``block``
    number that changes whenever any other line interrupts them. Empty or
    ``None`` input gives three empty lists.
    """
    result = DiffLines()
    if not diff_text:
        return result

    block = 0
    for line in diff_text.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            result.added.append(DiffLine(line[1:], block=block))
            continue

        if result.added and result.added[-1].block == block:
            block += 1
        if line.startswith("-") and not line.startswith("---"):
            result.removed.append(DiffLine(line[1:]))
        elif not line.startswith("@@") and not line.startswith("diff"):
            result.context.append(DiffLine(line))

    return result


def build_unified_diff(old: str | None, new: str | None, path: str) -> str:
    """
    Render two versions of a file as a unified diff.

    Args:
        old: Content before the change (``None`` for added files)
        new: Content after the change (``None`` for deleted files)
        path: Repository path used in the ``a/`` and ``b/`` headers

    Returns:
        Diff text, empty when the versions are identical
    """
    name = path.lstrip("/")
    lines = difflib.unified_diff(
        (old or "").splitlines(),
        (new or "").splitlines(),
        fromfile=f"a/{name}",
        tofile=f"b/{name}",
        lineterm="",
    )
    text = "\n".join(lines)
    return text + "\n" if text else ""


def diff_stats(diff_text: str | None) -> tuple[int, int]:
    """Return ``(added, removed)`` line counts for *diff_text*.

    Well-formed patches are counted with unidiff. Anything it rejects is
    counted with :func:`split_diff_lines`.
    """
    if not diff_text:
        return 0, 0

    try:
        patch_set = PatchSet(diff_text)
    except UnidiffParseError as e:
        logger.debug("unidiff rejected diff, counting lines directly: %s", e)
        patch_set = None

    if patch_set:
        return (
            sum(patched_file.added for patched_file in patch_set),
            sum(patched_file.removed for patched_file in patch_set),
        )

    lines = split_diff_lines(diff_text)
    return len(lines.added), len(lines.removed)


def split_patch(diff_text: str) -> list[tuple[str, str]]:
    """
    Split a multi-file patch into ``(path, file_diff)`` pairs.

    Text unidiff cannot parse comes back as one entry with an empty path,
    so the caller can still analyze it line by line.
    """
    if not diff_text or not diff_text.strip():
        return []

    try:
        patch_set = PatchSet(diff_text)
    except UnidiffParseError as e:
        logger.warning("Could not parse patch, analyzing as a single diff: %s", e)
        return [("", diff_text)]

    if not patch_set:
        return [("", diff_text)]

    return [(patched_file.path, str(patched_file)) for patched_file in patch_set]


# File extensions to skip during review
SKIP_EXTENSIONS = {
    '.md', '.txt', '.rst', '.adoc',           # Docs
    '.lock',                                   # Lock files
    '.png', '.jpg', '.jpeg', '.gif', '.svg', '.ico', '.webp',  # Images
    '.woff', '.woff2', '.ttf', '.eot',        # Fonts
    '.csv', '.xml', '.yaml', '.yml', '.toml',  # Data
    '.min.js', '.min.css', '.map',            # Build artifacts
    '.exe', '.dll', '.so', '.dylib', '.pyc',  # Binary
    '.zip', '.tar', '.gz', '.pdf',            # Archives/docs
}

SKIP_FILENAMES = {
    'package-lock.json', 'yarn.lock', 'pnpm-lock.yaml',
    'Pipfile.lock', 'poetry.lock', 'composer.lock',
    'Gemfile.lock', 'Cargo.lock', 'uv.lock',
    '.gitignore', '.gitattributes', '.editorconfig',
    'LICENSE', 'LICENSE.md', 'LICENSE.txt',
}

SKIP_DIRECTORIES = {'node_modules/', 'vendor/', 'dist/', 'build/', '.git/', '__pycache__/', '.venv/'}


def should_review_file(path: str) -> bool:
    """Check if a file should be analyzed based on its path."""
    filename = path.lstrip('/')

    for skip_dir in SKIP_DIRECTORIES:
        if filename.startswith(skip_dir) or f'/{skip_dir}' in filename:
            return False

    basename = filename.split('/')[-1]
    if basename in SKIP_FILENAMES:
        return False

    for ext in SKIP_EXTENSIONS:
        if filename.lower().endswith(ext):
            return False

    return True
