"""Prompts for the code generation loop.

- **SYSTEM_PROMPT** -- tool semantics, the candidate contract, and the
  runtime helper surface available inside the sandbox.
- **build_task_prompt()** -- ground truth, document size, and the previous
  attempt's failure text when retrying.
- **NUDGE_PROMPT** -- appended once when the model keeps exploring past the
  nudge turn without writing code.
"""

from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT: str = (
    "You are an expert at writing data extraction code for captured HTML "
    "documents such as EHR (Electronic Health Record) pages.\n\n"
    "The document is too large to read at once. Explore it with the tools:\n"
    "- get_html_stats: size, structure counts and likely data locations. "
    "Call this first.\n"
    "- search_html: find elements by CSS selector.\n"
    "- search_html_text: find elements whose own text contains a string.\n"
    "- read_html_section: read an exact range of lines.\n\n"
    "When you know where every expected field lives, write the extractor.\n\n"
    "CANDIDATE CONTRACT:\n"
    "1. Define exactly one entry point: `def extract():` with no arguments.\n"
    "2. Return a plain dict whose keys match the expected output.\n"
    "3. Wrap the body in try/except and use None for fields you cannot find.\n"
    "4. No import statements. No access to names or attributes that start "
    "with an underscore. No open, eval, exec, getattr or similar built-ins. "
    "Use f-strings instead of str.format.\n"
    "5. Plain built-ins (len, str, int, list, dict, sorted, ...) are "
    "available.\n\n"
    "RUNTIME HELPERS (already defined as globals, do not import):\n"
    "- document -- the parsed document root (BeautifulSoup).\n"
    "- query_deep(selector, root=None) -- first match, searching captured "
    "shadow-root and iframe content too.\n"
    "- query_all_deep(selector, root=None) -- all matches, same reach.\n"
    "- get_text_deep(element) -- whitespace-normalized text, including "
    "captured shadow/iframe content; '' for None.\n"
    "- get_attr(element, name) -- attribute value or None.\n"
    "- get_iframe_text(element) -- text of a captured iframe or None.\n"
    "- parse_date(text) -- ISO YYYY-MM-DD string or None.\n"
    "- extract_table_data(table, headers) -- dict of header -> first "
    "non-empty cell under the matching column.\n"
    "- wait_for_element(selector, timeout_ms=5000) -- polls query_deep.\n"
    "- re -- search, match, fullmatch, findall, finditer, sub, split, "
    "compile, escape and the usual flags.\n\n"
    "EXAMPLE OUTPUT:\n"
    "```python\n"
    "def extract():\n"
    "    try:\n"
    "        name = get_text_deep(query_deep('.patient-name'))\n"
    "        dob = get_text_deep(query_deep('.dob'))\n"
    "        return {\n"
    "            'patientName': name or None,\n"
    "            'dateOfBirth': parse_date(dob) if dob else None,\n"
    "        }\n"
    "    except Exception:\n"
    "        return {'patientName': None, 'dateOfBirth': None}\n"
    "```\n\n"
    "Reply with the final code in a single ```python fenced block."
)

NUDGE_PROMPT: str = (
    "You have explored enough. Write the extract() function now, using what "
    "you have found. Reply with the complete code in a ```python fenced "
    "block and make no further tool calls."
)

RETRY_HINTS: str = (
    "Common causes:\n"
    "- Selectors that match nothing in this document\n"
    "- Not handling None elements before reading text\n"
    "- Returning something other than a dict\n"
    "- Imports or forbidden built-ins, which the sandbox rejects"
)


def build_task_prompt(
    ground_truth: dict[str, Any],
    total_lines: int,
    previous_error: str | None = None,
) -> str:
    """Build the first user message for one generation attempt."""
    parts = [
        "Generate extraction code for this document.",
        "",
        "EXPECTED OUTPUT (ground truth):",
        json.dumps(ground_truth, indent=2, ensure_ascii=False, default=str),
        "",
        f"The document has {total_lines} lines. Use the tools to find where "
        "each field lives before writing code.",
    ]
    if previous_error:
        parts += [
            "",
            "PREVIOUS ATTEMPT FAILED WITH ERROR:",
            previous_error,
            "",
            "Fix the problem and generate corrected code.",
            RETRY_HINTS,
        ]
    return "\n".join(parts)
