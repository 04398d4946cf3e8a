"""
JSON utilities for cleaning LLM responses.
"""

import re

# A fenced block such as ```json ... ``` anywhere in the reply
FENCED_BLOCK = re.compile(r'```(?:json)?\s*(.*?)\s*```', re.DOTALL)


def clean_json_response(response: str) -> str:
    """Extract the JSON payload from an LLM reply.

    Models sometimes wrap the object in a code fence or add a sentence around it.
    The fenced block wins when present; otherwise the outermost braces are kept.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string
    """
    response = (response or '').strip()

    match = FENCED_BLOCK.search(response)
    if match:
        return match.group(1).strip()

    start = response.find('{')
    end = response.rfind('}')
    if start != -1 and end > start:
        return response[start:end + 1]
    return response
