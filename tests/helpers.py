"""Scripted backend responses and fixtures shared across test modules."""

from __future__ import annotations

import json

SAMPLE_DOCUMENT = "\n".join([
    "<html>",
    "<body>",
    '  <div class="header"><h1>Chart</h1></div>',
    '  <section id="demographics">',
    '    <span class="label">Name:</span> <span class="patient-name">Ann Smith</span>',
    '    <span class="label">DOB:</span> <span id="dob">03/14/1985</span>',
    "  </section>",
    '  <table id="meds">',
    "    <tr><th>Medication</th><th>Dose</th></tr>",
    "    <tr><td>Aspirin</td><td>81 mg</td></tr>",
    "  </table>",
    "</body>",
    "</html>",
])

SAMPLE_TRUTH = {"name": "Ann Smith", "dob": "1985-03-14"}

PASSING_SOURCE = """def extract():
    try:
        name = get_text_deep(query_deep('.patient-name'))
        dob = get_text_deep(query_deep('#dob'))
        return {'name': name or None, 'dob': parse_date(dob)}
    except Exception:
        return {'name': None, 'dob': None}
"""

WRONG_SOURCE = """def extract():
    return {'name': 'Bob', 'dob': None}
"""


def make_mock_llm(responses: list[dict]):
    """Create a mock LLM that returns responses in sequence.

    The last response repeats once the script runs out. Every call's
    messages are recorded on ``mock_llm.calls``.
    """
    call_count = [0]
    calls: list[list[dict]] = []

    def mock_llm(messages=None, tools=None, **kwargs):
        calls.append([dict(m) for m in messages])
        idx = min(call_count[0], len(responses) - 1)
        call_count[0] += 1
        return responses[idx]

    mock_llm.call_count = call_count
    mock_llm.calls = calls
    return mock_llm


def text_response(text: str) -> dict:
    """LLM response with plain text and no tool calls."""
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def code_response(source: str, preamble: str = "Here is the extractor:") -> dict:
    """LLM response carrying source in a python fence."""
    return text_response(f"{preamble}\n\n```python\n{source}\n```\n")


def tool_call_response(
    tool_name: str,
    arguments: dict,
    call_id: str = "call_1",
    text: str = "",
) -> dict:
    """LLM response with a single tool call."""
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": text,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": tool_name,
                                "arguments": json.dumps(arguments),
                            },
                        }
                    ],
                }
            }
        ]
    }


class ScriptedGenerator:
    """Stand-in for CodeGenerator: each ``generate()`` pops the next item.

    Items are source strings or exceptions to raise.
    """

    def __init__(self, script: list):
        self.script = list(script)
        self.calls: list[dict] = []
        self.closed = False

    def generate(self, raw_document, ground_truth, previous_error=None, attempt=1):
        from snapforge.models.snapshot import Candidate

        self.calls.append({"previous_error": previous_error, "attempt": attempt})
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return Candidate(source=item, attempt=attempt, turns=1)

    def close(self):
        self.closed = True
