import logging
from typing import Dict, List

log = logging.getLogger(__name__)


def replace_text(value: str, replacements: Dict[str, str]) -> str:
    """
    Replaces all occurrences of specified substrings within a string.
    Does not use regular expressions.

    Args:
        value: The original string to perform replacements on.
        replacements: A dictionary where keys are the substrings
                      to find and values are the strings to
                      replace them with.

    Returns:
        The string with all specified replacements made.
        Returns the original value if it's not a string.
    """
    if not isinstance(value, str):
        return value

    modified_value = value
    for search_string, replace_string in replacements.items():
        if isinstance(search_string, str) and isinstance(replace_string, str):
            modified_value = modified_value.replace(search_string, replace_string)
        else:
            log.warning(f"replace_text: Skipping replacement for key '{search_string}' as either key or value is not a string.")

    return modified_value


def placeholders(variables: Dict[str, str]) -> Dict[str, str]:
    """Turns ``{'name': value}`` into ``{'${name}': value}``."""
    return {f"${{{key}}}": value for key, value in variables.items()}


def substitute_tokens(template: str, variables: Dict[str, str]) -> List[str]:
    """Splits a whitespace-delimited template and substitutes every token."""
    replacements = placeholders(variables)
    return [replace_text(token, replacements) for token in template.split()]
