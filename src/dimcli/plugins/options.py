"""
Option declarations and option composition.

Command plugins declare their flags with commander-style signatures
("-o, --output <file>"). Every plugin-backed command receives the global
options first, followed by its own options in declaration order. The
merged set is turned into click parameters; value patterns are checked by
click parameter callbacks, i.e. while the command line is parsed.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

import click
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dimcli.config import DEFAULT_NETWORKS
from dimcli.exceptions import OptionDeclarationError, OptionValidationError

if TYPE_CHECKING:
    from dimcli.plugins.base import CommandPlugin

logger = logging.getLogger(__name__)

_FLAG = re.compile(r"-[A-Za-z0-9]|--[A-Za-z0-9][A-Za-z0-9-]*")
_VALUE_PLACEHOLDER = re.compile(r"<([A-Za-z0-9_-]+)>|\[([A-Za-z0-9_-]+)\]")
_COMMAND_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")
_ARGUMENT_PLACEHOLDER = re.compile(
    r"<([A-Za-z][A-Za-z0-9_-]*)(\.\.\.)?>|\[([A-Za-z][A-Za-z0-9_-]*)(\.\.\.)?\]"
)

NODE_PATTERN = r"(https?://)?([a-z0-9_\.][a-z0-9\-_\.]*)(:[0-9]+)?"
PORT_PATTERN = r"[0-9]+"

# Flags click adds to every command
HELP_FLAGS = ("--help",)


@dataclass(frozen=True)
class FlagSignature:
    """Parsed form of a flag signature such as "-n, --node [node]"."""

    flags: tuple[str, ...]
    dest: str
    value_name: Optional[str] = None
    value_required: bool = False

    @property
    def takes_value(self) -> bool:
        return self.value_name is not None


def parse_flag_signature(signature: str) -> FlagSignature:
    """
    Parse a commander-style flag signature.

    "<value>" and "[value]" declare a value-taking option; without a
    placeholder the option is a boolean flag. The destination name comes
    from the first long flag, dashes turned into underscores.

    Raises:
        OptionDeclarationError: If the signature is malformed
    """
    tokens = [token for token in re.split(r"[,\s]+", signature.strip()) if token]
    if not tokens:
        raise OptionDeclarationError("Empty flag signature")

    value_name = None
    value_required = False
    placeholder = _VALUE_PLACEHOLDER.fullmatch(tokens[-1])
    if placeholder:
        value_name = placeholder.group(1) or placeholder.group(2)
        value_required = placeholder.group(1) is not None
        tokens = tokens[:-1]

    if not tokens:
        raise OptionDeclarationError(f"No flag in signature {signature!r}")

    for token in tokens:
        if not _FLAG.fullmatch(token):
            raise OptionDeclarationError(
                f"Invalid flag {token!r} in signature {signature!r}"
            )
    if len(set(tokens)) != len(tokens):
        raise OptionDeclarationError(f"Repeated flag in signature {signature!r}")

    long_flags = [token for token in tokens if token.startswith("--")]
    dest = (long_flags[0] if long_flags else tokens[0]).lstrip("-").replace("-", "_")

    return FlagSignature(
        flags=tuple(tokens),
        dest=dest,
        value_name=value_name,
        value_required=value_required,
    )


@dataclass(frozen=True)
class ArgumentSpec:
    """A positional argument taken from a command signature."""

    name: str
    required: bool = True
    variadic: bool = False

    def to_click(self) -> click.Argument:
        return click.Argument(
            [self.name],
            required=self.required,
            nargs=-1 if self.variadic else 1,
        )


def parse_command_signature(signature: str) -> tuple[str, tuple[ArgumentSpec, ...]]:
    """
    Split a command signature into the command name and its arguments.

    Grammar: ``name <required> [optional] [rest...]``

    Raises:
        OptionDeclarationError: If the signature is malformed
    """
    tokens = signature.split()
    if not tokens:
        raise OptionDeclarationError("Empty command signature")

    name = tokens[0]
    if not _COMMAND_NAME.fullmatch(name):
        raise OptionDeclarationError(f"Invalid command name {name!r}")

    arguments: list[ArgumentSpec] = []
    for token in tokens[1:]:
        match = _ARGUMENT_PLACEHOLDER.fullmatch(token)
        if not match:
            raise OptionDeclarationError(
                f"Invalid argument {token!r} in signature {signature!r}"
            )
        required = match.group(1) is not None
        raw_name = match.group(1) or match.group(3)
        variadic = bool(match.group(2) or match.group(4))

        if arguments and arguments[-1].variadic:
            raise OptionDeclarationError(
                f"Variadic argument must come last in signature {signature!r}"
            )
        if required and arguments and not arguments[-1].required:
            raise OptionDeclarationError(
                f"Required argument {token!r} follows an optional one in {signature!r}"
            )

        arguments.append(
            ArgumentSpec(
                name=raw_name.replace("-", "_").lower(),
                required=required,
                variadic=variadic,
            )
        )

    return name, tuple(arguments)


class OptionSpec(BaseModel):
    """
    Declaration of one command line option.

    Example:
        >>> OptionSpec(
        ...     signature="-N, --network [network]",
        ...     description="Set network",
        ...     pattern="(mainnet|testnet)",
        ...     ignore_case=True,
        ...     normalize=str.lower,
        ... )
    """

    model_config = ConfigDict(frozen=True)

    signature: str = Field(..., min_length=2)
    description: str = ""
    pattern: Optional[str] = Field(
        None,
        description="Regular expression the whole value must match",
    )
    ignore_case: bool = False
    normalize: Optional[Callable[[str], Any]] = None
    default: Any = None

    @field_validator("signature")
    @classmethod
    def validate_signature(cls, value: str) -> str:
        try:
            parse_flag_signature(value)
        except OptionDeclarationError as e:
            raise ValueError(str(e)) from e
        return value.strip()

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"pattern does not compile: {e}") from e
        return value

    @model_validator(mode="after")
    def check_pattern_needs_value(self) -> "OptionSpec":
        if self.pattern is not None and not self.parsed.takes_value:
            raise ValueError(f"boolean flag {self.signature!r} cannot carry a pattern")
        return self

    @property
    def parsed(self) -> FlagSignature:
        return parse_flag_signature(self.signature)

    @property
    def flags(self) -> tuple[str, ...]:
        return self.parsed.flags

    @property
    def dest(self) -> str:
        return self.parsed.dest

    def validate_value(self, value: str) -> Any:
        """
        Check a raw value against the pattern and normalize it.

        Raises:
            ValueError: If the value does not match the pattern
        """
        if self.pattern is not None:
            flags = re.IGNORECASE if self.ignore_case else 0
            if not re.fullmatch(self.pattern, value, flags):
                raise ValueError(f"{value!r} does not match {self.pattern!r}")
        if self.normalize is not None:
            return self.normalize(value)
        return value

    def _click_callback(
        self, ctx: click.Context, param: click.Parameter, value: Any
    ) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return self.validate_value(value)
        except ValueError as e:
            raise OptionValidationError(
                value, self.pattern or "", ctx=ctx, param=param
            ) from e

    def to_click(self) -> click.Option:
        """
        Build the click option for this declaration.

        "<value>" options always consume the next token. "[value]" options
        may be given bare (or followed by another flag), in which case they
        read ``True``.
        """
        parsed = self.parsed
        if not parsed.takes_value:
            return click.Option(
                [parsed.dest, *parsed.flags],
                is_flag=True,
                default=bool(self.default),
                help=self.description,
            )
        if parsed.value_required:
            return click.Option(
                [parsed.dest, *parsed.flags],
                default=self.default,
                metavar=f"<{parsed.value_name}>",
                help=self.description,
                callback=self._click_callback,
            )
        return click.Option(
            [parsed.dest, *parsed.flags],
            is_flag=False,
            flag_value=True,
            type=click.UNPROCESSED,
            default=self.default,
            metavar=f"[{parsed.value_name}]",
            help=self.description,
            callback=self._click_callback,
        )


def global_options(networks: Sequence[str] = DEFAULT_NETWORKS) -> tuple[OptionSpec, ...]:
    """Build the options attached to every plugin-backed command."""
    names = [name.lower() for name in networks]
    label = "|".join(name.capitalize() for name in names)

    return (
        OptionSpec(
            signature="-n, --node [node]",
            description="Set custom [node] for NIS API",
            pattern=NODE_PATTERN,
            ignore_case=True,
        ),
        OptionSpec(
            signature="-p, --port [port]",
            description="Set custom [port] for NIS API",
            pattern=PORT_PATTERN,
            normalize=int,
        ),
        OptionSpec(
            signature="-N, --network [network]",
            description=f"Set network ({label})",
            pattern="(" + "|".join(re.escape(name) for name in names) + ")",
            ignore_case=True,
            normalize=str.lower,
        ),
        OptionSpec(signature="-S, --force-ssl", description="Use SSL (HTTPS)"),
        OptionSpec(
            signature="-d, --verbose",
            description="Set verbose command execution (more logs)",
        ),
    )


GLOBAL_OPTIONS = global_options()


@dataclass(frozen=True)
class InvocationSchema:
    """Merged command definition registered with the argument parser."""

    identifier: str
    name: str
    signature: str
    description: str
    arguments: tuple[ArgumentSpec, ...]
    options: tuple[OptionSpec, ...]

    def to_click_params(self) -> list[click.Parameter]:
        params: list[click.Parameter] = [argument.to_click() for argument in self.arguments]
        params.extend(option.to_click() for option in self.options)
        return params


def _check_collisions(
    options: Sequence[OptionSpec], arguments: Sequence[ArgumentSpec]
) -> None:
    seen_flags: dict[str, str] = {flag: "the built-in help option" for flag in HELP_FLAGS}
    seen_dests: dict[str, str] = {"help": "the built-in help option"}
    seen_dests.update(
        {argument.name: f"<{argument.name}>" for argument in arguments}
    )

    for option in options:
        for flag in option.flags:
            if flag in seen_flags:
                raise OptionDeclarationError(
                    f"Flag {flag} of {option.signature!r} is already declared "
                    f"by {seen_flags[flag]!r}"
                )
            seen_flags[flag] = option.signature
        if option.dest in seen_dests:
            raise OptionDeclarationError(
                f"Option {option.signature!r} reuses the name '{option.dest}' "
                f"of {seen_dests[option.dest]!r}"
            )
        seen_dests[option.dest] = option.signature


def compose_schema(
    identifier: str,
    plugin: "CommandPlugin",
    global_options: Sequence[OptionSpec] = GLOBAL_OPTIONS,
) -> InvocationSchema:
    """
    Build the invocation schema of one plugin.

    The plugin's options are read once and appended, in declaration order,
    after the global options.

    Raises:
        OptionDeclarationError: If the signature is malformed, an option is
            not an OptionSpec, or a flag or name is declared twice
    """
    signature = plugin.signature
    name, arguments = parse_command_signature(signature)

    declared = tuple(plugin.options or ())
    for option in declared:
        if not isinstance(option, OptionSpec):
            raise OptionDeclarationError(
                f"Options must be OptionSpec instances, got {type(option).__name__}"
            )

    options = tuple(global_options) + declared
    _check_collisions(options, arguments)

    logger.debug(
        "Composed schema for %s: %d argument(s), %d option(s)",
        identifier,
        len(arguments),
        len(options),
    )
    return InvocationSchema(
        identifier=identifier,
        name=name,
        signature=signature,
        description=plugin.description,
        arguments=arguments,
        options=options,
    )
