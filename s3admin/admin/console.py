"""
Text-mode renderer for the administration wizard.
"""

from typing import Callable, List, Optional, Union

from .interpreter import AdminSession
from .program import record_field
from .screens import Button, Form, Screen, screen_for

QUIT_WORDS = {"q", "quit", "exit"}


def render_screen(screen: Screen) -> List[str]:
    """Text lines for `screen`, options numbered from 1."""
    lines = ["", f"== {screen.title} =="]
    if screen.body:
        lines.append(screen.body)
    for i, option in enumerate(screen_options(screen), start=1):
        if isinstance(option, Form):
            lines.append(f"  [{i}] {option.label} ({', '.join(option.fields)})")
        else:
            lines.append(f"  [{i}] {option.label}")
    lines.append("  [q] quit")
    return lines


def screen_options(screen: Screen) -> List[Union[Form, Button]]:
    """Forms then buttons, in the order they are numbered."""
    return list(screen.forms) + list(screen.buttons)


def run_console(session: AdminSession,
                read: Optional[Callable[[str], str]] = None,
                write: Optional[Callable[[str], None]] = None):
    """Drive `session` from a terminal until the user quits or input ends."""
    read = read or input
    write = write or print
    while True:
        screen = screen_for(session.state)
        for line in render_screen(screen):
            write(line)
        options = screen_options(screen)

        try:
            choice = read("> ").strip().lower()
        except EOFError:
            return
        if choice in QUIT_WORDS:
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(options):
            write(f"unknown choice {choice!r}")
            continue

        option = options[int(choice) - 1]
        if isinstance(option, Button):
            session.send(option.program)
            continue

        for name in option.fields:
            try:
                value = read(f"{name}: ")
            except EOFError:
                return
            session.send(record_field(name, value))
        session.send(option.submit)
