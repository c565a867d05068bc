"""Tag namespacing for synced repositories"""
from typing import Iterable, List

from merge_repos.exceptions import ConfigurationError
from merge_repos.logging_config import get_logger
from merge_repos.services.git.operations import GitOperations

logger = get_logger(__name__)


def _is_ignored_tag(tag: str, prefix: str, ignore_prefixes: Iterable[str]) -> bool:
    if tag.startswith(prefix):
        return True
    return any(tag.startswith(ignore) for ignore in ignore_prefixes)


def rename_tags(gateway: GitOperations, prefix: str, ignore_prefixes: Iterable[str]) -> List[str]:
    """Prefix every tag of the working tree with ``prefix``, deleting the original.

    Tags that already carry ``prefix`` or any of ``ignore_prefixes`` are
    left alone. When the prefixed tag already exists only the original is
    removed.

    Returns:
        The names of the tags that were created

    Raises:
        ConfigurationError: If the prefix has no name before its separator
    """
    if not prefix.strip("/"):
        raise ConfigurationError(f"Invalid tag prefix '{prefix}'")

    logger.info(f"Renaming Tags {prefix}")
    ignore_prefixes = list(ignore_prefixes)
    existing = gateway.tags()
    known = set(existing)
    created = []
    for tag in existing:
        if _is_ignored_tag(tag, prefix, ignore_prefixes):
            continue

        new_name = prefix + tag
        if new_name not in known:
            logger.debug(f" - {tag} => {new_name}")
            gateway.create_tag(new_name, tag)
            known.add(new_name)
            created.append(new_name)

        gateway.delete_tag(tag)

    return created
