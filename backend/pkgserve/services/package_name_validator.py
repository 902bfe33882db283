"""
Package Name Validator Service

Checks package names against the npm naming rules before any work is done
for a request. Names that npm itself would never publish are refused early,
so they never reach the resolver or the caches.
"""

import re
from typing import Any, Dict, List, Optional
import logging

from pkgserve.utils.search import encode_uri_component

logger = logging.getLogger(__name__)

# Names npm refuses outright (compared case-insensitively)
BLOCKLISTED_NAMES = frozenset({"node_modules", "favicon.ico"})

MAX_NAME_LENGTH = 214

SCOPED_PACKAGE_PATTERN = re.compile(r"^(?:@([^/]+?)/)?([^/]+?)$")
SPECIAL_CHARACTERS = re.compile(r"[~'!()*]")


class PackageNameValidator:
    """Service for validating package names against the npm naming rules"""

    def validate(self, name: Optional[str]) -> Dict[str, Any]:
        """
        Validate a package name.

        Args:
            name: Package name (e.g., 'lodash' or '@babel/core')

        Returns:
            Dict with validation result:
            {
                "valid": bool,
                "errors": List[str]  # reasons the name was refused, in rule order
            }

        Note:
            Capital letters, special characters and overlong names only
            produce warnings in npm (they are still valid for old packages).
            Here they are errors: the service never serves such names.
        """
        errors: List[str] = []

        if name is None or not isinstance(name, str):
            errors.append("name must be a string")
            return self._result(name, errors)

        if not name:
            errors.append("name length must be greater than zero")

        if name.startswith("."):
            errors.append("name cannot start with a period")

        if name.startswith("_"):
            errors.append("name cannot start with an underscore")

        if name.strip() != name:
            errors.append("name cannot contain leading or trailing spaces")

        if name.lower() in BLOCKLISTED_NAMES:
            errors.append(f"{name} is a blocklisted name")

        if len(name) > MAX_NAME_LENGTH:
            errors.append(f"name can no longer contain more than {MAX_NAME_LENGTH} characters")

        if name.lower() != name:
            errors.append("name can no longer contain capital letters")

        if SPECIAL_CHARACTERS.search(name.split("/")[-1]):
            errors.append("name can no longer contain special characters (\"~'!()*\")")

        if name and not self._is_url_friendly(name):
            errors.append("name can only contain URL-friendly characters")

        return self._result(name, errors)

    def _is_url_friendly(self, name: str) -> bool:
        if encode_uri_component(name) == name:
            return True

        # Scoped names have an "@" and a "/" that are allowed to stay as-is
        match = SCOPED_PACKAGE_PATTERN.match(name)
        if match and match.group(1) is not None:
            scope, package = match.groups()
            return (
                encode_uri_component(scope) == scope
                and encode_uri_component(package) == package
            )

        return False

    def _result(self, name: Any, errors: List[str]) -> Dict[str, Any]:
        is_valid = len(errors) == 0

        if is_valid:
            logger.debug(f"Package name '{name}' is valid")
        else:
            logger.warning(f"Package name '{name}' failed validation: {len(errors)} error(s)")
            for error in errors:
                logger.debug(f"  - {error}")

        return {
            "valid": is_valid,
            "errors": errors
        }
