"""Small interactive prompts for confirmations and selections."""

from __future__ import annotations

from collections.abc import Callable, Sequence

InputFunc = Callable[[str], str]


class PromptAborted(Exception):
    """Raised when the user declines or interrupts a prompt."""


def _ask(input_func: InputFunc | None, text: str) -> str:
    reader = input_func if input_func is not None else input
    try:
        return reader(text)
    except (EOFError, KeyboardInterrupt) as exc:
        raise PromptAborted("interrupted") from exc


def confirm(label: str, input_func: InputFunc | None = None) -> bool:
    """Ask a yes/no question; return True on yes, raise PromptAborted otherwise."""
    answer = _ask(input_func, f"{label} [y/N] ").strip().lower()
    if answer in ("y", "yes"):
        return True
    raise PromptAborted("interrupted")


def select(
    label: str,
    items: Sequence[str],
    cursor_pos: int = 0,
    input_func: InputFunc | None = None,
) -> str:
    """Let the user pick one of ``items``; an empty answer picks the item at the cursor."""
    if not items:
        raise PromptAborted("nothing to select")
    if not 0 <= cursor_pos < len(items):
        cursor_pos = 0

    print(f"{label}:")
    for number, item in enumerate(items, start=1):
        marker = ">" if number - 1 == cursor_pos else " "
        print(f"{marker} {number}) {item}")

    while True:
        answer = _ask(input_func, f"Choose [{cursor_pos + 1}]: ").strip()
        if not answer:
            return items[cursor_pos]
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return items[int(answer) - 1]
        if answer in items:
            return answer
        print(f"Invalid selection: {answer}")