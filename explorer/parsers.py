"""
Text parsers used by the bulk importers.

* ``parse_java_model`` reads a Selenium page-object class and returns the
  page name plus every ``By`` locator it declares.
* ``extract_scenarios`` returns the scenario titles of a ``.feature`` file.

Both are pure functions of their input text.
"""

import re
from dataclasses import dataclass, field

from explorer.models import SelectorType

PAGE_CLASS_PATTERN = re.compile(r"public class (\w+)Model")

# Identifiers may carry Turkish letters besides the usual word characters
_IDENTIFIER = r"[a-zA-ZğĞüÜşŞıİöÖçÇ\w]+"

ELEMENT_PATTERN = re.compile(
    r"public static By (" + _IDENTIFIER + r")\s*=\s*By\.(\w+)\s*\(\"((?:[^\"\\]|\\.)*)\"\)"
)
DECLARATION_PATTERN = re.compile(r"public static By (" + _IDENTIFIER + r")")
ESCAPE_PATTERN = re.compile(r"\\(.)")
UPPERCASE_PATTERN = re.compile(r"([A-Z])")

LOCATOR_SELECTOR_TYPES = {
    "id": SelectorType.ID,
    "cssSelector": SelectorType.CSS,
    "xpath": SelectorType.XPATH,
}

SCENARIO_PREFIX = "Scenario:"


@dataclass(frozen=True)
class ParsedElement:
    """A locator declaration recovered from a page-object class."""

    name: str
    selector_type: str
    selector_value: str


@dataclass
class JavaModelParseResult:
    """
    Outcome of parsing one page-object source file.

    Attributes:
        page_name: Class name without the ``Model`` suffix.
        elements: Declarations that parsed, in source order.
        failed_elements: Raw identifiers of ``By`` declarations whose
            locator could not be read, in source order.
    """

    page_name: str
    elements: list[ParsedElement] = field(default_factory=list)
    failed_elements: list[str] = field(default_factory=list)


def format_element_name(name: str) -> str:
    """
    Turn a camelCase identifier into a title-cased label.

    >>> format_element_name("submitButton")
    'Submit Button'
    """
    spaced = UPPERCASE_PATTERN.sub(r" \1", name).strip()
    if not spaced:
        return spaced
    return spaced[0].upper() + spaced[1:]


def _selector_type_for(locator: str) -> str:
    return LOCATOR_SELECTOR_TYPES.get(locator, SelectorType.ID).value


def parse_java_model(content: str) -> JavaModelParseResult | None:
    """
    Parse a Java page-object class.

    Args:
        content: Full source text of one ``.java`` file.

    Returns:
        The parse result, or ``None`` when the file holds no
        ``public class <Name>Model`` declaration.
    """
    page_match = PAGE_CLASS_PATTERN.search(content)
    if not page_match:
        return None

    result = JavaModelParseResult(page_name=page_match.group(1))

    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("//") or stripped.startswith("/*"):
            continue
        if "By." not in stripped or "public static" not in stripped:
            continue

        element_match = ELEMENT_PATTERN.search(stripped)
        if element_match:
            identifier, locator, escaped_value = element_match.groups()
            result.elements.append(ParsedElement(
                name=format_element_name(identifier),
                selector_type=_selector_type_for(locator),
                selector_value=ESCAPE_PATTERN.sub(r"\1", escaped_value)
            ))
            continue

        declaration = DECLARATION_PATTERN.search(stripped)
        if declaration:
            result.failed_elements.append(declaration.group(1))

    return result


def extract_scenarios(content: str) -> list[str]:
    """
    Return the titles of ``Scenario:`` lines in ``.feature`` text.

    Only the literal ``Scenario:`` prefix is recognised; outlines, tags
    and backgrounds are ignored.
    """
    titles = []
    for line in content.split("\n"):
        stripped = line.strip()
        if stripped.startswith(SCENARIO_PREFIX):
            titles.append(stripped.replace(SCENARIO_PREFIX, "", 1).strip())
    return titles
