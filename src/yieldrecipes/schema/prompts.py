"""
Interactive prompt primitives.

Recipes, the schema prompter and the transaction pipeline never call
click directly for input; they go through a ``Prompter`` so tests can
script the answers. ``ClickPrompter`` is the terminal implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence, Union

import click

# Returns an error message, or None when the input is acceptable
Validator = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class Choice:
    label: str
    value: Any = None

    def resolved(self) -> Any:
        return self.label if self.value is None else self.value


ChoiceLike = Union[Choice, str]


def as_choices(choices: Sequence[ChoiceLike]) -> list[Choice]:
    return [c if isinstance(c, Choice) else Choice(str(c), c) for c in choices]


class Prompter(Protocol):
    def select(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        ...

    def autocomplete(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        ...

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Validator] = None,
    ) -> str:
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        ...


class ClickPrompter:
    """
    Terminal prompts built on click.

    ``select`` prints a numbered list; ``autocomplete`` filters the list by
    a search string first, which keeps long lists (hundreds of yields or
    markets) usable without a full-screen UI.
    """

    def __init__(self, page_size: int = 20) -> None:
        self.page_size = page_size

    def select(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        options = as_choices(choices)
        if not options:
            raise click.UsageError(f"No choices available for: {message}")
        click.echo(message)
        for i, choice in enumerate(options, start=1):
            click.echo(click.style(f"  {i:>3}) ", dim=True) + choice.label)
        index = click.prompt(
            click.style("  Select", fg="cyan"),
            type=click.IntRange(1, len(options)),
        )
        return options[index - 1].resolved()

    def autocomplete(self, message: str, choices: Sequence[ChoiceLike]) -> Any:
        options = as_choices(choices)
        if len(options) <= self.page_size:
            return self.select(message, options)

        while True:
            query = click.prompt(
                f"{message} (type to search, Enter to list first {self.page_size})",
                default="",
                show_default=False,
            ).strip().lower()
            matches = [c for c in options if query in c.label.lower()]
            if not matches:
                click.secho("  No matches, try again.", fg="yellow")
                continue
            if len(matches) > self.page_size:
                click.secho(
                    f"  {len(matches)} matches, showing the first {self.page_size}.",
                    dim=True,
                )
                shown = matches[: self.page_size] + [Choice("Refine search", _REFINE)]
            else:
                shown = matches
            picked = self.select(message, shown)
            if picked is not _REFINE:
                return picked

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Validator] = None,
    ) -> str:
        while True:
            value = click.prompt(
                message,
                default=default if default is not None else "",
                show_default=default not in (None, ""),
            )
            value = str(value).strip()
            error = validate(value) if validate else None
            if error is None:
                return value
            click.secho(f"  {error}", fg="red")

    def confirm(self, message: str, default: bool = False) -> bool:
        return click.confirm(message, default=default)


_REFINE = object()
