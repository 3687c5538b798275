"""Section anchor generation.

Anchors look like ``<!-- SECTION_ANCHOR_{section_id}_{normalized_title} -->``.
An instance remembers every anchor it issued so ids are unique within one
document; call reset_used_anchors() before starting the next document.
"""

import re
from typing import Dict, List, Mapping, Optional

ANCHOR_PREFIX = "<!-- SECTION_ANCHOR_"
ANCHOR_SUFFIX = " -->"
MAX_TITLE_LENGTH = 50
FALLBACK_TITLE = "section"

SECTION_ID_PATTERN = re.compile(r"^[\w-]+$")
HTML_TAG_PATTERN = re.compile(r"<[^>]*>")

TRANSLITERATION = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "yo",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "kh", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "",
    "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
}
TRANSLITERATION.update(
    {upper.upper(): latin.capitalize() for upper, latin in list(TRANSLITERATION.items())}
)
_TRANSLITERATION_TABLE = str.maketrans(TRANSLITERATION)


class AnchorGenerator:
    """Generates unique, readable section anchors."""

    def __init__(
        self,
        max_title_length: int = MAX_TITLE_LENGTH,
        transliterate: bool = True,
        normalize_case: bool = True,
    ):
        self.max_title_length = max_title_length
        self.transliterate = transliterate
        self.normalize_case = normalize_case
        self._used: Dict[str, None] = {}
        self._pattern = re.compile(
            re.escape(ANCHOR_PREFIX) + r"(.*?)" + re.escape(ANCHOR_SUFFIX)
        )

    def generate(self, section_id: str, title: str) -> str:
        """Issue an anchor marker for a section.

        Raises:
            ValueError: section_id is empty or has characters outside [A-Za-z0-9_-]
        """
        self._validate_id(section_id)
        base = f"{section_id}_{self.normalize_title(title)}"
        anchor_id = base
        counter = 1
        while anchor_id in self._used:
            anchor_id = f"{base}_{counter}"
            counter += 1
        self._used[anchor_id] = None
        return self.marker(anchor_id)

    def generate_batch(self, sections: Mapping[str, str]) -> Dict[str, str]:
        """Anchors for a mapping of section id to title."""
        return {section_id: self.generate(section_id, title) for section_id, title in sections.items()}

    @staticmethod
    def marker(anchor_id: str) -> str:
        return f"{ANCHOR_PREFIX}{anchor_id}{ANCHOR_SUFFIX}"

    def normalize_title(self, title: str) -> str:
        title = HTML_TAG_PATTERN.sub("", title)[: self.max_title_length]
        if self.transliterate:
            title = title.translate(_TRANSLITERATION_TABLE)
        title = re.sub(r"[^\w\s-]", "", title)
        title = re.sub(r"[\s-]+", "_", title).strip("_")
        if self.normalize_case:
            title = title.lower()
        return title or FALLBACK_TITLE

    @staticmethod
    def _validate_id(section_id: str) -> None:
        if not SECTION_ID_PATTERN.match(section_id):
            raise ValueError(f"Invalid section id for anchor: {section_id!r}")

    def is_valid_anchor(self, anchor: str) -> bool:
        return anchor.startswith(ANCHOR_PREFIX) and anchor.endswith(ANCHOR_SUFFIX)

    def extract_anchor_id(self, anchor: str) -> Optional[str]:
        if not self.is_valid_anchor(anchor):
            return None
        return anchor[len(ANCHOR_PREFIX):-len(ANCHOR_SUFFIX)]

    def find_anchors_in_text(self, text: str) -> List[str]:
        """Full anchor markers in order of appearance."""
        return [match.group(0) for match in self._pattern.finditer(text)]

    def replace_anchor(self, text: str, anchor_id: str, replacement: str) -> str:
        return text.replace(self.marker(anchor_id), replacement)

    def insert_after_anchor(self, text: str, anchor_id: str, insertion: str) -> str:
        marker = self.marker(anchor_id)
        return text.replace(marker, f"{marker}\n{insertion}")

    def remove_anchor(self, text: str, anchor_id: str) -> str:
        return text.replace(self.marker(anchor_id), "")

    def reset_used_anchors(self) -> None:
        self._used.clear()

    def get_used_anchors(self) -> List[str]:
        return list(self._used)
