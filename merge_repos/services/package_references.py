"""Rewriting package names and relative config paths inside relocated packages"""
import json
import os
import re
from typing import Dict, List

from merge_repos.logging_config import get_logger
from merge_repos.utils.paths import to_posix
from merge_repos.utils.text import remove_trailing_comma

logger = get_logger(__name__)

_TSCONFIG_EXTENDS = re.compile(r"""extends['"]:\s*['"](([^'"]*)/(tsconfig[^\s,'"]*))['"]""", re.MULTILINE)
_ESLINT_CONFIG = re.compile(r"""require\(['"]([^'"]*eslint\.(?:config|base)\.js)['"]\)""", re.MULTILINE)
_KARMA_REQUIRE = re.compile(r"""require\(['"](([^'"]*)/(karma[^'"]*|webpack\.node[^'"]*))['"]\)""", re.MULTILINE)


def transform_content(content: str, renames: Dict[str, str]) -> str:
    """Replace quoted references to renamed packages (including deep imports)."""
    for old_name in sorted(renames, key=len, reverse=True):
        new_name = renames[old_name]
        if old_name == new_name:
            continue
        pattern = re.compile(r"""(['"])""" + re.escape(old_name) + r"""(?=['"/])""")
        content = pattern.sub(lambda match: match.group(1) + new_name, content)
    return content


def should_process(path: str) -> bool:
    """Only TypeScript/JavaScript sources under src/ or test/ carry package references."""
    path = to_posix(path)
    if "/node_modules/" in path or path.endswith(".d.ts") or path.endswith("/version.ts"):
        return False
    return "/src/" in path or "/test/" in path


def update_file_package_references(gateway, base: str, dest_path: str, renames: Dict[str, str],
                                   ignore_names=()) -> List[str]:
    """Rewrite package references in every processable file under ``base/dest_path``.

    Returns:
        Paths (relative to ``base``) of the rewritten files
    """
    changed = []
    root = os.path.join(base, dest_path)
    logger.debug(f" -- Checking {to_posix(root)}")
    for current, dirs, names in os.walk(root):
        dirs[:] = sorted(name for name in dirs if name not in ignore_names and name != ".git")
        for name in sorted(names):
            full_path = os.path.join(current, name)
            rel_path = to_posix(os.path.relpath(full_path, base))
            if not should_process("/" + rel_path):
                continue
            try:
                with open(full_path, "r", encoding="utf-8") as source_file:
                    content = source_file.read()
            except UnicodeDecodeError:
                logger.debug(f" -- {rel_path} is not text, skipped")
                continue

            new_content = transform_content(content, renames)
            if content and new_content != content:
                logger.info(f" -- {rel_path} changed -- rewriting...")
                with open(full_path, "w", encoding="utf-8") as source_file:
                    source_file.write(new_content)
                gateway.add(rel_path)
                changed.append(rel_path)
    return changed


def _prune_references(content: str) -> str:
    """Keep only package local tsconfig references; the workspace tool links packages."""
    if '"references"' not in content:
        return content
    try:
        config = json.loads(remove_trailing_comma(content))
    except ValueError:
        # tsconfig files may hold comments, leave those untouched
        logger.debug("Unable to parse tsconfig references, left as is")
        return content

    references = config.get("references")
    if references is None:
        return content
    local = [ref for ref in references if str(ref.get("path", "")).startswith("./tsconfig.")]
    if local:
        config["references"] = local
    else:
        del config["references"]
    return json.dumps(config, indent=2)


def rewrite_config_file(name: str, content: str, root_relative: str, eslint_base: str) -> str:
    """Return ``content`` with paths to shared root configs made relative to the new location."""
    if name.startswith("tsconfig."):
        def _extends(match):
            full_name, filename = match.group(1), match.group(3)
            return match.group(0).replace(full_name, root_relative + filename)

        return _prune_references(_TSCONFIG_EXTENDS.sub(_extends, content))

    if name == ".eslintrc.js":
        return _ESLINT_CONFIG.sub(lambda match: match.group(0).replace(match.group(1), eslint_base), content)

    if name.startswith("karma"):
        def _karma(match):
            return match.group(0).replace(match.group(1), root_relative + match.group(3))

        return _KARMA_REQUIRE.sub(_karma, content)

    return content


def update_config_file_relative_paths(gateway, base: str, dest_path: str) -> List[str]:
    """Fix the relative paths of config files in a package relocated to ``dest_path``.

    Returns:
        Names of the rewritten files
    """
    dest = os.path.join(base, dest_path)
    root_relative = to_posix(os.path.relpath(base, dest)) + "/"
    eslint_base = to_posix(os.path.relpath(os.path.join(base, "eslint.base.js"), dest))

    changed = []
    names = sorted(os.listdir(dest))
    logger.debug(f"Updating relative paths: {len(names)} file(s) in {to_posix(dest)}")
    for name in names:
        full_path = os.path.join(dest, name)
        if not os.path.isfile(full_path):
            continue
        if not (name.startswith("tsconfig.") or name.startswith("karma") or name == ".eslintrc.js"):
            continue

        with open(full_path, "r", encoding="utf-8") as config_file:
            content = config_file.read()
        new_content = rewrite_config_file(name, content, root_relative, eslint_base)
        if content and new_content != content:
            logger.info(f" -- {to_posix(full_path)} changed -- rewriting...")
            with open(full_path, "w", encoding="utf-8") as config_file:
                config_file.write(new_content)
            gateway.add(to_posix(os.path.relpath(full_path, base)))
            changed.append(name)
    return changed
