import re
from datetime import datetime
from typing import Any, Dict, List, Optional


class ImageNameFormatter:
    """
    Filename formatter for exported composites and tiles.

    Recognized placeholders:
      {i}              -> tile index (left intact when no index is given)
      {n}              -> number of tiles in the mosaic
      {Y} {M} {D}      -> year, month, day (unpadded)
      {h} {m} {s}      -> hour, minute, second (unpadded)
      {d[:<strftime>]} -> date from the clock; custom format via {d:%Y%m%d_%H%M%S}
                          (default is %Y%m%d if no format is provided)

    Unknown placeholders are left intact (e.g., {sample}).
    Literal braces are written as {{ and }}.

    The default composite name "Composite_{M}_{D}_{Y}_{h}:{m}:{s}" renders
    as e.g. "Composite_8_1_2018_14:5:9".
    """

    _TOKEN_OPEN = "\uE000"  # for '{{'
    _TOKEN_CLOSE = "\uE001"  # for '}}'
    _FIELD_RE = re.compile(r"\{([^{}]+)\}")  # captures the content inside {}
    _CLOCK_FIELDS = {
        "Y": "year",
        "M": "month",
        "D": "day",
        "h": "hour",
        "m": "minute",
        "s": "second",
    }
    RECOGNIZED = {"i", "n", "d"} | set(_CLOCK_FIELDS)

    def __init__(
        self,
        *,
        template: Optional[str] = None,
        default_date_format: str = "%Y%m%d",
    ):
        self._template: Optional[str] = template
        self._default_date_format = default_date_format

    @staticmethod
    def _needed_fields(template: str) -> set:
        """Return the set of placeholder keys that appear in the template (without formats)."""
        needed = set()
        for m in ImageNameFormatter._FIELD_RE.finditer(template):
            key = m.group(1).strip().split(":", 1)[0].strip()
            needed.add(key)
        return needed

    def _render(self, template: str, values: Dict[str, Any], now: datetime) -> str:
        s = template.replace("{{", self._TOKEN_OPEN).replace("}}", self._TOKEN_CLOSE)

        def _sub(m: re.Match) -> str:
            raw = m.group(1).strip()
            parts = raw.split(":", 1)
            key = parts[0].strip()

            if key in self._CLOCK_FIELDS:
                return str(getattr(now, self._CLOCK_FIELDS[key]))

            if key == "d":
                fmt = parts[1] if len(parts) == 2 and parts[1] else self._default_date_format
                try:
                    return now.strftime(fmt)
                except ValueError:
                    # Bad format: leave the token as-is
                    return m.group(0)

            if key in values:
                return str(values[key])

            return m.group(0)

        s = self._FIELD_RE.sub(_sub, s)
        return s.replace(self._TOKEN_OPEN, "{").replace(self._TOKEN_CLOSE, "}")

    def get_formatted_string(
        self,
        *,
        template: Optional[str] = None,
        index: Optional[int] = None,
        count: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Build the formatted string.

        Args (named-only, all optional):
          template: override format for this call; or use saved template.
          index: value for {i}; left as-is when not given.
          count: value for {n}; left as-is when not given.
          now: timestamp for date/clock fields; defaults to datetime.now().
        """
        tpl = template if template is not None else self._template
        if not tpl:
            raise ValueError("No template provided or saved. Pass template=... or set one at construction")

        needed = self._needed_fields(tpl)
        values: Dict[str, Any] = {}
        if "i" in needed and index is not None:
            values["i"] = int(index)
        if "n" in needed and count is not None:
            values["n"] = int(count)

        return self._render(tpl, values, now or datetime.now())

    def validate_template(self, template: str, *, strict: bool = False) -> Dict[str, Any]:
        """
        Validate a filename template.

        Args:
          template: The template string to validate.
          strict:   If True, unknown placeholders are treated as errors.

        Returns:
          {"is_valid": bool, "issues": [str], "recognized": [...], "unknown": [...]}
        """
        issues: List[str] = []

        s = template.replace("{{", self._TOKEN_OPEN).replace("}}", self._TOKEN_CLOSE)
        depth = 0
        for i, ch in enumerate(s):
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth < 0:
                    issues.append(f"Unmatched '}}' at position {i}.")
                    break
        if depth > 0:
            issues.append("Unbalanced braces: number of '{' and '}' does not match.")

        recognized: List[str] = []
        unknown: List[str] = []
        for m in self._FIELD_RE.finditer(template):
            raw = m.group(1).strip()
            parts = raw.split(":", 1)
            key = parts[0].strip()

            if key not in self.RECOGNIZED:
                if strict:
                    issues.append(f"Unknown placeholder {{{raw}}} at pos {m.start()}.")
                if key not in unknown:
                    unknown.append(key)
                continue

            if key not in recognized:
                recognized.append(key)

            if len(parts) == 2 and key != "d":
                issues.append(f"Formatting is only supported for {{d}}. Found format on {{{raw}}}.")
            elif len(parts) == 2:
                try:
                    datetime.now().strftime(parts[1])
                except ValueError as e:
                    issues.append(f"Invalid date format in {{{raw}}}: {e}")

        if not self._render(template, {"i": 0, "n": 0}, datetime.now()).strip():
            issues.append("Template renders to an empty name.")

        return {
            "is_valid": len(issues) == 0,
            "issues": issues,
            "recognized": recognized,
            "unknown": unknown,
        }
