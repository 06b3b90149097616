"""
Sensitive action detection.

An action is sensitive if its lowercased name contains a keyword, or a
keyword contains the name. "fill_form" and "submit" match, and so does
"sub" (contained in "submit").
"""

SENSITIVE_ACTIONS = (
    "fill",  # form filling, may carry credentials
    "submit",
    "upload_file",
)


def is_sensitive_action(action_name: str) -> bool:
    name = action_name.lower()
    if not name:
        return False
    return any(keyword in name or name in keyword for keyword in SENSITIVE_ACTIONS)
