"""
Tollgate - Authorization and safety gating for model-driven agents.

Tollgate sits between an autonomous agent and any action with real-world
side effects: writing files, switching operating modes, or driving a web
browser. It provides:
- A priority-ordered policy rule matcher (ALLOW / DENY / ASK_USER)
- A confirmation protocol with no side effects on cancel
- Scoped, mode-gated rules injected at runtime by privileged tools
- Browser guards (URL filtering, sensitive actions, rate limiting)
- A turn-bounded control loop for browser-operating models

Example usage:
    $ tollgate evaluate write_file --args '{"file_path": "/app/notes.md"}' --mode plan
    $ tollgate check-url https://example.com --allow "https://*.example.com"
    $ tollgate browse "Find the latest release notes on github.com"
"""

__version__ = "0.1.0"
__author__ = "Tollgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
