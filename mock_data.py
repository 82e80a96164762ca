"""Canned model responses for running without API calls (USE_MOCK=true)."""

# Shape of a real review response, fences included
MOCK_RESPONSE = """```json
{
  "dangers": [],
  "issues": [
    {
      "line": 3,
      "description": "calculate_average raises ZeroDivisionError when called with an empty list."
    }
  ],
  "suggestions": [
    {
      "line": 1,
      "description": "Add type hints to the public function signature."
    }
  ],
  "good_practices": [
    {
      "line": 2,
      "description": "Uses the built-in sum() instead of a manual loop."
    }
  ],
  "fix": [
    {
      "line": 3,
      "explanation": "Guard against empty input.",
      "code": "-    return total / len(numbers)\\n+    return total / len(numbers) if numbers else 0"
    }
  ],
  "score": 72,
  "summary": "Readable helper with an unguarded division on empty input."
}
```"""

MOCK_SUMMARY = (
    "Mock review completed without contacting a model provider.\n"
    "- No real analysis was performed."
)
